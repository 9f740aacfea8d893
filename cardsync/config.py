from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "cardsync"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/cardsync"

    data_dir: Path = Path("./data")

    catalog_source_url: str = "https://mtgjson.com/api/v5/AllPrintings.json.gz"
    price_source_url: str = "https://mtgjson.com/api/v5/AllPricesToday.json.gz"

    # "mtgjson" prices are keyed by uuid, "scryfall" prices by scryfall_id
    price_source: str = "mtgjson"
    scryfall_bulk_api: str = "https://api.scryfall.com/bulk-data"

    batch_size: int = 500
    localized_language: str = "Spanish"

    catalog_interval_hours: int = 24 * 7
    price_interval_hours: int = 24

    scheduler_enabled: bool = True
    scheduler_startup_delay_seconds: float = 10.0
    scheduler_tick_seconds: float = 60.0 * 60.0

    http_timeout_seconds: float = 300.0
    user_agent: str = "cardsync/1.0"


settings = Settings()


# =============================================================================
# DIGITAL-ONLY CONTENT FILTER
# =============================================================================

# Set names containing any of these (case-insensitive) are online-only products
DIGITAL_SET_NAME_MARKERS = ("alchemy", "magic online", "masters edition")

# Rebalanced Alchemy cards are printed as "A-<name>"
DIGITAL_NAME_PREFIX = "A-"


# =============================================================================
# CHECKPOINT KEYS
# =============================================================================

CATALOG_CHECKPOINT_KEY = "last_card_update"
PRICE_CHECKPOINT_KEY = "last_price_update"

VALID_PRICE_SOURCES = frozenset({"mtgjson", "scryfall"})

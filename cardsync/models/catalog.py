from dataclasses import dataclass
from datetime import date
from typing import Any

PRICE_FIELDS = ("price_eur", "price_eur_foil", "price_usd", "price_usd_foil")


@dataclass(frozen=True, slots=True)
class CatalogRecord:
    """
    One printing of a card, normalized for insertion into the catalog.

    Attributes:
        uuid: Source-assigned identifier, unique across all printings
        name: Canonical English card name
        name_localized: Name in the configured foreign language, if any
        set_code: Set code (e.g., "DMU")
        set_name: Human-readable set name
        rarity: Rarity string from the source ("unknown" if missing)
        colors: Color symbols (W, U, B, R, G)
        mana_cost: Mana cost expression (e.g., "{2}{B}{B}")
        mana_value: Converted mana value
        type_line: Full type line
        oracle_text: Rules text
        scryfall_id: Scryfall id, used for images and Scryfall prices
        collector_number: Collector number within the set
        is_online_only: True for digital-only printings
        released_at: Release date of the set
    """

    uuid: str
    name: str
    set_code: str
    set_name: str
    name_localized: str | None = None
    rarity: str = "unknown"
    colors: tuple[str, ...] = ()
    mana_cost: str | None = None
    mana_value: float = 0.0
    type_line: str = ""
    oracle_text: str | None = None
    scryfall_id: str | None = None
    collector_number: str = ""
    is_online_only: bool = False
    released_at: date | None = None

    def to_row(self) -> dict[str, Any]:
        """Column mapping for a bulk insert."""
        return {
            "uuid": self.uuid,
            "name": self.name,
            "name_localized": self.name_localized,
            "set_code": self.set_code,
            "set_name": self.set_name,
            "rarity": self.rarity,
            "colors": list(self.colors),
            "mana_cost": self.mana_cost,
            "mana_value": self.mana_value,
            "type_line": self.type_line,
            "oracle_text": self.oracle_text,
            "scryfall_id": self.scryfall_id,
            "collector_number": self.collector_number,
            "is_online_only": self.is_online_only,
            "released_at": self.released_at,
        }


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    """
    Current market prices for one printing.

    Any of the four prices may be None, meaning the source had no value
    for it. None never overwrites a stored price.
    """

    key: str
    key_field: str = "uuid"  # uuid or scryfall_id
    price_eur: float | None = None
    price_eur_foil: float | None = None
    price_usd: float | None = None
    price_usd_foil: float | None = None

    @property
    def has_any_price(self) -> bool:
        return any(getattr(self, name) is not None for name in PRICE_FIELDS)

    def present_prices(self) -> dict[str, float]:
        """Only the price columns this update carries a value for."""
        values = {}
        for name in PRICE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values


@dataclass(frozen=True, slots=True)
class FieldUpdate:
    """A single-column backfill for an existing card, keyed by uuid."""

    uuid: str
    value: Any


@dataclass
class CycleStats:
    """Running counters for one sync cycle."""

    seen: int = 0
    persisted: int = 0
    excluded: int = 0
    batches: int = 0
    sets_processed: int = 0
    swept: int = 0
    peak_buffered: int = 0

    def as_log_dict(self) -> dict[str, int]:
        """Counters suitable for a single summary log line."""
        summary = {
            "seen": self.seen,
            "persisted": self.persisted,
            "excluded": self.excluded,
            "batches": self.batches,
        }
        if self.sets_processed:
            summary["sets_processed"] = self.sets_processed
        if self.swept:
            summary["swept"] = self.swept
        return summary

"""
Raw bulk record -> catalog row conversion.

Normalizes MTGJSON card and price entries (and Scryfall price entries) and
applies the digital-only filter: Alchemy, MTGO and other online-exclusive
printings never enter the physical catalog.
"""

from collections.abc import Callable, Iterable, Iterator
from datetime import date
from typing import Any

from cardsync.config import DIGITAL_NAME_PREFIX, DIGITAL_SET_NAME_MARKERS, settings
from cardsync.models.catalog import CatalogRecord, CycleStats, PriceUpdate
from cardsync.models.errors import DecodeError

PriceTransform = Callable[[Any], PriceUpdate | None]


def is_digital_set(set_name: str, set_online_only: bool = False) -> bool:
    """True if a whole set is an online-only product."""
    if set_online_only:
        return True
    lowered = set_name.lower()
    return any(marker in lowered for marker in DIGITAL_SET_NAME_MARKERS)


def is_digital_card(
    name: str,
    set_name: str,
    *,
    card_online_only: bool = False,
    set_online_only: bool = False,
) -> bool:
    """
    Decide whether a printing is digital-only.

    A printing is digital-only if it is flagged online-only, belongs to an
    online-only set, belongs to a set whose name contains a digital product
    marker, or carries the rebalanced-card name prefix.
    """
    return (
        card_online_only
        or is_digital_set(set_name, set_online_only)
        or name.startswith(DIGITAL_NAME_PREFIX)
    )


def localized_name(card: dict[str, Any], language: str) -> str | None:
    """Name of the card in the given language, or None if not translated."""
    for entry in card.get("foreignData") or []:
        if entry.get("language") == language and entry.get("name"):
            return str(entry["name"])
    return None


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


def transform_card(
    card: dict[str, Any],
    set_code: str,
    set_name: str,
    *,
    set_online_only: bool = False,
    released_at: date | None = None,
    language: str | None = None,
) -> CatalogRecord | None:
    """
    Normalize one MTGJSON card.

    Every optional field falls back to an explicit default. Returns None
    only when the card has no uuid.
    """
    uuid = card.get("uuid")
    if not uuid:
        return None

    identifiers = card.get("identifiers") or {}
    return CatalogRecord(
        uuid=str(uuid),
        name=card.get("name") or "Unknown",
        name_localized=localized_name(card, language or settings.localized_language),
        set_code=card.get("setCode") or set_code,
        set_name=set_name,
        rarity=card.get("rarity") or "unknown",
        colors=tuple(card.get("colors") or ()),
        mana_cost=card.get("manaCost") or None,
        mana_value=float(card.get("manaValue") or 0),
        type_line=card.get("type") or "",
        oracle_text=card.get("text") or None,
        scryfall_id=identifiers.get("scryfallId") or None,
        collector_number=str(card.get("number") or ""),
        is_online_only=bool(card.get("isOnlineOnly")) or set_online_only,
        released_at=released_at,
    )


def iter_catalog_records(
    sets: Iterable[tuple[str, dict[str, Any]]],
    stats: CycleStats,
    *,
    language: str | None = None,
) -> Iterator[CatalogRecord]:
    """
    Flatten streamed sets into eligible catalog records.

    Digital-only printings are counted in stats.excluded and not yielded.

    Raises:
        DecodeError: If a set has no cards list
    """
    for set_code, set_data in sets:
        cards = set_data.get("cards")
        if not isinstance(cards, list):
            raise DecodeError(f"Set {set_code} has no cards list")

        set_name = set_data.get("name") or set_code
        set_online_only = is_digital_set(set_name, bool(set_data.get("isOnlineOnly")))
        released_at = _parse_date(set_data.get("releaseDate"))
        stats.sets_processed += 1

        for card in cards:
            if not card.get("uuid"):
                continue

            if is_digital_card(
                card.get("name") or "",
                set_name,
                card_online_only=bool(card.get("isOnlineOnly")),
                set_online_only=set_online_only,
            ):
                stats.excluded += 1
                continue

            record = transform_card(
                card,
                set_code,
                set_name,
                set_online_only=set_online_only,
                released_at=released_at,
                language=language,
            )
            if record is not None:
                yield record


def iter_field_values(
    sets: Iterable[tuple[str, dict[str, Any]]],
    extract: Callable[[dict[str, Any]], Any],
) -> Iterator[tuple[str, Any]]:
    """Yield (uuid, value) for every card where extract() returns a value."""
    for _set_code, set_data in sets:
        for card in set_data.get("cards") or []:
            uuid = card.get("uuid")
            if not uuid:
                continue
            value = extract(card)
            if value is not None:
                yield str(uuid), value


# --- Prices ---


def latest_price(date_map: dict[str, Any] | None) -> float | None:
    """
    Price for the most recent date in a {date: price} map.

    ISO dates sort lexicographically, so the last key is the newest.
    """
    if not date_map:
        return None
    value = date_map[max(date_map)]
    if value is None:
        return None
    return float(value)


def transform_mtgjson_price(uuid: str, price_data: dict[str, Any]) -> PriceUpdate | None:
    """
    Normalize one AllPricesToday entry.

    EUR prices come from Cardmarket retail, USD prices from TCGplayer retail.
    Returns None if all four prices are missing.
    """
    paper = price_data.get("paper") or {}
    cardmarket = (paper.get("cardmarket") or {}).get("retail") or {}
    tcgplayer = (paper.get("tcgplayer") or {}).get("retail") or {}

    update = PriceUpdate(
        key=uuid,
        key_field="uuid",
        price_eur=latest_price(cardmarket.get("normal")),
        price_eur_foil=latest_price(cardmarket.get("foil")),
        price_usd=latest_price(tcgplayer.get("normal")),
        price_usd_foil=latest_price(tcgplayer.get("foil")),
    )
    return update if update.has_any_price else None


def _parse_price(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def transform_scryfall_price(card: dict[str, Any]) -> PriceUpdate | None:
    """
    Normalize the prices of one Scryfall card object, keyed by scryfall_id.

    Scryfall reports prices as decimal strings. Returns None if the card has
    no id or no prices.
    """
    scryfall_id = card.get("id")
    if not scryfall_id:
        return None

    prices = card.get("prices") or {}
    update = PriceUpdate(
        key=str(scryfall_id),
        key_field="scryfall_id",
        price_eur=_parse_price(prices.get("eur")),
        price_eur_foil=_parse_price(prices.get("eur_foil")),
        price_usd=_parse_price(prices.get("usd")),
        price_usd_foil=_parse_price(prices.get("usd_foil")),
    )
    return update if update.has_any_price else None


def iter_price_updates(
    entries: Iterable[Any],
    stats: CycleStats,
    transform: PriceTransform,
) -> Iterator[PriceUpdate]:
    """
    Apply a price transform to streamed entries, dropping priceless ones.

    Dropped entries are counted in stats.excluded.
    """
    for entry in entries:
        update = transform(entry)
        if update is None:
            stats.excluded += 1
            continue
        yield update


def mtgjson_price_entry(entry: tuple[str, dict[str, Any]]) -> PriceUpdate | None:
    """Adapter so (uuid, blob) pairs can be fed to iter_price_updates."""
    uuid, price_data = entry
    return transform_mtgjson_price(uuid, price_data)

from cardsync.parsers.mtgjson import iter_catalog_sets, iter_price_entries, open_bulk_file
from cardsync.parsers.scryfall import iter_scryfall_cards

__all__ = [
    "iter_catalog_sets",
    "iter_price_entries",
    "iter_scryfall_cards",
    "open_bulk_file",
]

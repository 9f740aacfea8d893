"""
Streaming Scryfall bulk data parser.

Scryfall bulk files are a single top-level JSON array of card objects,
served either plain or gzipped. Cards are yielded one at a time.

Bulk data: https://scryfall.com/docs/api/bulk-data
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import ijson

from cardsync.parsers.mtgjson import decode_errors, open_bulk_file


def iter_scryfall_cards(path: Path) -> Iterator[dict[str, Any]]:
    """
    Stream card objects from a Scryfall bulk file.

    Args:
        path: Path to a default-cards JSON file (gzipped or not)

    Yields:
        Card dicts in file order

    Raises:
        DecodeError: If the file is not valid gzip or JSON
    """
    with open_bulk_file(path) as f, decode_errors(path):
        for card in ijson.items(f, "item", use_float=True):
            if isinstance(card, dict):
                yield card

"""
Streaming MTGJSON bulk file parser.

MTGJSON files look like {"meta": {...}, "data": {KEY: {...}, ...}}. The
parsers here decompress and parse in a single pass with ijson and yield one
entry of "data" at a time, so memory use does not grow with file size.

Bulk data: https://mtgjson.com/downloads/all-files/
"""

import gzip
import zlib
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import IO, Any

import ijson

from cardsync.models.errors import DecodeError

GZIP_MAGIC = b"\x1f\x8b"

# Errors raised by gzip/zlib/ijson on corrupt or truncated input
_STREAM_ERRORS = (OSError, EOFError, zlib.error, ijson.JSONError)


def open_bulk_file(path: Path) -> IO[bytes]:
    """
    Open a bulk file for binary reading, decompressing if it is gzipped.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    with open(path, "rb") as f:
        magic = f.read(2)
    if magic == GZIP_MAGIC:
        return gzip.open(path, "rb")
    return open(path, "rb")


@contextmanager
def decode_errors(path: Path) -> Iterator[None]:
    """Re-raise low-level stream errors as DecodeError."""
    try:
        yield
    except _STREAM_ERRORS as e:
        raise DecodeError(f"Malformed bulk file {path.name}: {e}") from e


def _iter_data_entries(path: Path) -> Iterator[tuple[str, dict[str, Any]]]:
    found_data = False

    def events(f: IO[bytes]) -> Iterator[tuple[str, str, Any]]:
        nonlocal found_data
        for prefix, event, value in ijson.parse(f, use_float=True):
            if prefix == "data" and event == "start_map":
                found_data = True
            yield prefix, event, value

    with open_bulk_file(path) as f, decode_errors(path):
        for key, value in ijson.kvitems(events(f), "data"):
            if isinstance(value, dict):
                yield key, value

    if not found_data:
        raise DecodeError(f"Malformed bulk file {path.name}: no 'data' object")


def iter_catalog_sets(path: Path) -> Iterator[tuple[str, dict[str, Any]]]:
    """
    Stream sets from an AllPrintings file.

    Args:
        path: Path to AllPrintings.json.gz (or uncompressed .json)

    Yields:
        (set_code, set_data) pairs, where set_data holds "name", "cards", etc.

    Raises:
        DecodeError: If the file is not valid gzip or JSON, has no "data"
            object, or a set has no "cards" list
    """
    with closing(_iter_data_entries(path)) as entries:
        for set_code, set_data in entries:
            if not isinstance(set_data.get("cards"), list):
                raise DecodeError(
                    f"Malformed bulk file {path.name}: set {set_code} has no cards list"
                )
            yield set_code, set_data


def iter_price_entries(path: Path) -> Iterator[tuple[str, dict[str, Any]]]:
    """
    Stream per-card price blobs from an AllPricesToday file.

    Yields:
        (uuid, price_data) pairs, where price_data is shaped like
        {"paper": {"cardmarket": {"retail": {"normal": {date: price}}}}}

    Raises:
        DecodeError: If the file is not valid gzip or JSON, or has no
            "data" object
    """
    return _iter_data_entries(path)

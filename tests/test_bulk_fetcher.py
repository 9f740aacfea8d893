"""Tests for bulk file downloads (mocked HTTP)."""

from pathlib import Path

import httpx
import pytest
import respx

from cardsync.models.errors import FetchError
from cardsync.services.bulk_fetcher import (
    cleanup_file,
    download_file,
    resolve_scryfall_bulk_url,
)

SOURCE_URL = "https://mtgjson.example/api/v5/AllPrintings.json.gz"
BULK_API = "https://api.scryfall.example/bulk-data"


class TestDownloadFile:
    @respx.mock
    async def test_writes_body_to_disk(self, tmp_path: Path) -> None:
        respx.get(SOURCE_URL).mock(return_value=httpx.Response(200, content=b"payload-bytes"))
        dest = tmp_path / "AllPrintings.json.gz"

        result = await download_file(SOURCE_URL, dest)

        assert result == dest
        assert dest.read_bytes() == b"payload-bytes"
        assert not (tmp_path / "AllPrintings.json.gz.part").exists()

    @respx.mock
    async def test_creates_missing_directory(self, tmp_path: Path) -> None:
        respx.get(SOURCE_URL).mock(return_value=httpx.Response(200, content=b"x"))
        dest = tmp_path / "nested" / "data" / "file.gz"

        await download_file(SOURCE_URL, dest)

        assert dest.exists()

    @respx.mock
    async def test_uses_injected_client(self, tmp_path: Path) -> None:
        route = respx.get(SOURCE_URL).mock(return_value=httpx.Response(200, content=b"x"))

        async with httpx.AsyncClient() as client:
            await download_file(SOURCE_URL, tmp_path / "f.gz", client=client)
            assert not client.is_closed

        assert route.called

    @respx.mock
    async def test_http_error_raises_fetch_error(self, tmp_path: Path) -> None:
        respx.get(SOURCE_URL).mock(return_value=httpx.Response(503))
        dest = tmp_path / "f.gz"

        with pytest.raises(FetchError, match="HTTP 503"):
            await download_file(SOURCE_URL, dest)

        assert not dest.exists()
        assert not (tmp_path / "f.gz.part").exists()

    @respx.mock
    async def test_network_error_raises_fetch_error(self, tmp_path: Path) -> None:
        respx.get(SOURCE_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(FetchError, match="connection refused"):
            await download_file(SOURCE_URL, tmp_path / "f.gz")

    @respx.mock
    async def test_empty_body_raises_fetch_error(self, tmp_path: Path) -> None:
        respx.get(SOURCE_URL).mock(return_value=httpx.Response(200, content=b""))
        dest = tmp_path / "f.gz"

        with pytest.raises(FetchError, match="empty"):
            await download_file(SOURCE_URL, dest)

        assert not dest.exists()

    @respx.mock
    async def test_failed_download_keeps_previous_file(self, tmp_path: Path) -> None:
        """A failed download never replaces a complete file with a partial one."""
        respx.get(SOURCE_URL).mock(return_value=httpx.Response(500))
        dest = tmp_path / "f.gz"
        dest.write_bytes(b"previous")

        with pytest.raises(FetchError):
            await download_file(SOURCE_URL, dest)

        assert dest.read_bytes() == b"previous"


class TestResolveScryfallBulkUrl:
    @respx.mock
    async def test_finds_default_cards(self) -> None:
        respx.get(BULK_API).mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {"type": "oracle_cards", "download_uri": "https://x/oracle.json"},
                        {"type": "default_cards", "download_uri": "https://x/default.json"},
                    ]
                },
            )
        )

        url = await resolve_scryfall_bulk_url(api_url=BULK_API)

        assert url == "https://x/default.json"

    @respx.mock
    async def test_missing_entry_raises(self) -> None:
        respx.get(BULK_API).mock(return_value=httpx.Response(200, json={"data": []}))

        with pytest.raises(FetchError, match="default_cards"):
            await resolve_scryfall_bulk_url(api_url=BULK_API)

    @respx.mock
    async def test_index_error_raises(self) -> None:
        respx.get(BULK_API).mock(return_value=httpx.Response(500))

        with pytest.raises(FetchError):
            await resolve_scryfall_bulk_url(api_url=BULK_API)


class TestCleanupFile:
    def test_removes_file_and_partial(self, tmp_path: Path) -> None:
        dest = tmp_path / "f.gz"
        dest.write_bytes(b"x")
        (tmp_path / "f.gz.part").write_bytes(b"y")

        cleanup_file(dest)

        assert not dest.exists()
        assert not (tmp_path / "f.gz.part").exists()

    def test_missing_file_is_fine(self, tmp_path: Path) -> None:
        cleanup_file(tmp_path / "never-downloaded.gz")

"""Tests for catalog and checkpoint database operations."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardsync.db.operations import (
    apply_field_updates,
    apply_price_updates,
    count_cards,
    delete_digital_only_cards,
    get_card_by_uuid,
    get_checkpoint,
    insert_cards_skip_duplicates,
    list_checkpoints,
    set_checkpoint,
)
from cardsync.models.catalog import CatalogRecord, FieldUpdate, PriceUpdate
from cardsync.models.db import CardDB, SystemSettingDB


def record(uuid: str, name: str = "Card", **extra) -> CatalogRecord:
    return CatalogRecord(uuid=uuid, name=name, set_code="TST", set_name="Test Set", **extra)


class TestInsertSkipDuplicates:
    async def test_inserts_new_rows(self, session: AsyncSession) -> None:
        inserted = await insert_cards_skip_duplicates(
            session, [record("a", colors=("R", "G")), record("b")]
        )
        await session.commit()

        assert inserted == 2
        assert await count_cards(session) == 2
        card = await get_card_by_uuid(session, "a")
        assert card is not None
        assert card.colors == ["R", "G"]

    async def test_skips_existing_uuid(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a", name="Original")])
        await session.commit()

        inserted = await insert_cards_skip_duplicates(
            session, [record("a", name="Changed"), record("b")]
        )
        await session.commit()

        assert inserted == 1
        assert await count_cards(session) == 2
        card = await get_card_by_uuid(session, "a")
        assert card is not None
        assert card.name == "Original"

    async def test_empty_batch(self, session: AsyncSession) -> None:
        assert await insert_cards_skip_duplicates(session, []) == 0


class TestApplyPriceUpdates:
    async def test_updates_by_uuid(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a")])
        await session.commit()

        matched = await apply_price_updates(
            session, [PriceUpdate(key="a", price_eur=1.0, price_usd=1.2)]
        )
        await session.commit()

        assert matched == 1
        card = await get_card_by_uuid(session, "a")
        assert card is not None
        assert (card.price_eur, card.price_usd) == (1.0, 1.2)
        assert card.price_eur_foil is None

    async def test_updates_by_scryfall_id(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a", scryfall_id="sf-a")])
        await session.commit()

        matched = await apply_price_updates(
            session, [PriceUpdate(key="sf-a", key_field="scryfall_id", price_usd_foil=9.5)]
        )
        await session.commit()

        assert matched == 1
        card = await get_card_by_uuid(session, "a")
        assert card is not None
        assert card.price_usd_foil == 9.5

    async def test_absent_price_keeps_stored_value(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a")])
        await apply_price_updates(
            session, [PriceUpdate(key="a", price_eur=1.0, price_eur_foil=2.0, price_usd=3.0)]
        )
        await session.commit()

        await apply_price_updates(session, [PriceUpdate(key="a", price_usd=3.5)])
        await session.commit()

        result = await session.execute(
            select(
                CardDB.price_eur, CardDB.price_eur_foil, CardDB.price_usd, CardDB.price_usd_foil
            ).where(CardDB.uuid == "a")
        )
        assert result.one() == (1.0, 2.0, 3.5, None)

    async def test_unknown_key_matches_nothing(self, session: AsyncSession) -> None:
        matched = await apply_price_updates(session, [PriceUpdate(key="ghost", price_usd=1.0)])

        assert matched == 0


class TestApplyFieldUpdates:
    async def test_overwrites_localized_name(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a")])
        await session.commit()

        matched = await apply_field_updates(
            session, "name_localized", [FieldUpdate("a", "Nombre"), FieldUpdate("zz", "X")]
        )
        await session.commit()

        assert matched == 1
        card = await get_card_by_uuid(session, "a")
        assert card is not None
        assert card.name_localized == "Nombre"

    async def test_rejects_other_columns(self, session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="cannot be backfilled"):
            await apply_field_updates(session, "price_usd", [FieldUpdate("a", 1.0)])


class TestDeleteDigitalOnly:
    async def test_removes_each_kind(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(
            session,
            [
                record("paper", "Lightning Bolt"),
                record("flagged", "Flagged", is_online_only=True),
                record("prefix", "A-Rebalanced"),
                CatalogRecord(uuid="alchemy", name="Thing", set_code="Y22", set_name="ALCHEMY: X"),
                CatalogRecord(
                    uuid="mtgo", name="Thing", set_code="ME4", set_name="Masters Edition IV"
                ),
            ],
        )
        await session.commit()

        removed = await delete_digital_only_cards(session)
        await session.commit()

        assert removed == 4
        assert await count_cards(session) == 1
        assert await get_card_by_uuid(session, "paper") is not None

    async def test_is_idempotent(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(
            session, [record("paper"), record("flagged", is_online_only=True)]
        )
        await session.commit()

        assert await delete_digital_only_cards(session) == 1
        assert await delete_digital_only_cards(session) == 0

    async def test_keeps_names_with_prefix_elsewhere(self, session: AsyncSession) -> None:
        await insert_cards_skip_duplicates(session, [record("a", "Bring A-Friend")])
        await session.commit()

        assert await delete_digital_only_cards(session) == 0


class TestCheckpoints:
    async def test_missing_checkpoint_is_none(self, session: AsyncSession) -> None:
        assert await get_checkpoint(session, "last_card_update") is None

    async def test_set_and_get(self, session: AsyncSession) -> None:
        when = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

        await set_checkpoint(session, "last_card_update", when)
        await session.commit()

        assert await get_checkpoint(session, "last_card_update") == when

    async def test_overwrites_instead_of_appending(self, session: AsyncSession) -> None:
        first = datetime(2026, 10, 1, tzinfo=UTC)
        second = first + timedelta(days=7)

        await set_checkpoint(session, "last_card_update", first)
        await session.commit()
        await set_checkpoint(session, "last_card_update", second)
        await session.commit()

        result = await session.execute(select(SystemSettingDB))
        assert len(result.scalars().all()) == 1
        assert await get_checkpoint(session, "last_card_update") == second

    async def test_naive_stored_value_is_utc(self, session: AsyncSession) -> None:
        session.add(SystemSettingDB(key="last_price_update", value="2026-10-18T06:00:00"))
        await session.commit()

        assert await get_checkpoint(session, "last_price_update") == datetime(
            2026, 10, 18, 6, 0, tzinfo=UTC
        )

    async def test_list_checkpoints(self, session: AsyncSession) -> None:
        when = datetime(2026, 10, 18, tzinfo=UTC)
        await set_checkpoint(session, "last_price_update", when)
        await session.commit()

        checkpoints = await list_checkpoints(session, ["last_price_update", "last_card_update"])

        assert checkpoints == {"last_price_update": when, "last_card_update": None}

    async def test_unparseable_value_counts_as_never_run(
        self, session: AsyncSession, caplog: pytest.LogCaptureFixture
    ) -> None:
        session.add(SystemSettingDB(key="last_price_update", value="not-a-date"))
        await session.commit()

        assert await get_checkpoint(session, "last_price_update") is None
        assert await list_checkpoints(session, ["last_price_update"]) == {
            "last_price_update": None
        }
        assert "unparseable checkpoint" in caplog.text

    async def test_unparseable_value_is_overwritten(self, session: AsyncSession) -> None:
        session.add(SystemSettingDB(key="last_price_update", value="not-a-date"))
        await session.commit()
        when = datetime(2026, 10, 18, tzinfo=UTC)

        await set_checkpoint(session, "last_price_update", when)
        await session.commit()

        assert await get_checkpoint(session, "last_price_update") == when

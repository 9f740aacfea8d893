from cardsync.db.database import build_session_factory, get_session, init_db
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

__all__ = [
    "apply_field_updates",
    "apply_price_updates",
    "build_session_factory",
    "count_cards",
    "delete_digital_only_cards",
    "get_card_by_uuid",
    "get_checkpoint",
    "get_session",
    "init_db",
    "insert_cards_skip_duplicates",
    "list_checkpoints",
    "set_checkpoint",
]

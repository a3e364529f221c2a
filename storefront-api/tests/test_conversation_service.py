from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.message import Message, MessageSender, QuickReplyAction
from app.services.conversation_service import ConversationNotFoundError, ConversationStore
from app.services.state_machine import ConversationState


class TestConversationStore:
    def test_load_or_create_starts_idle(self, db_session):
        store = ConversationStore(db_session)
        snapshot = store.load_or_create("shop-1", "conv-1")

        assert snapshot.state == ConversationState.IDLE
        assert snapshot.is_ai_active
        assert snapshot.chat_history == []
        assert store.load_or_create("shop-1", "conv-1").id == "conv-1"

    def test_conversation_belongs_to_one_shop(self, db_session):
        store = ConversationStore(db_session)
        store.load_or_create("shop-1", "conv-1")
        with pytest.raises(ConversationNotFoundError):
            store.load_or_create("shop-2", "conv-1")

    def test_save_round_trips_snapshot(self, db_session):
        store = ConversationStore(db_session)
        snapshot = store.load_or_create("shop-1", "conv-1")
        until = datetime.now(timezone.utc) + timedelta(minutes=30)
        saved = store.save(
            snapshot.model_copy(
                update={
                    "state": ConversationState.AWAITING_ORDER_ID_FOR_STATUS,
                    "chat_history": [{"role": "user", "content": "hi"}],
                    "tags": ["Order ID: TCCX-1001"],
                    "awaiting_proof_for_order_id": "TCCX-1001",
                    "awaiting_proof_until": until,
                }
            )
        )

        assert saved.state == ConversationState.AWAITING_ORDER_ID_FOR_STATUS
        assert saved.chat_history == [{"role": "user", "content": "hi"}]
        assert saved.tags == ["Order ID: TCCX-1001"]
        assert saved.awaiting_proof_until.tzinfo is not None
        assert abs((saved.awaiting_proof_until - until).total_seconds()) < 1

    def test_transcript_keeps_order_and_content(self, db_session):
        store = ConversationStore(db_session)
        store.load_or_create("shop-1", "conv-1")
        store.append_message("conv-1", Message(sender=MessageSender.CUSTOMER, text="hello"))
        store.append_message(
            "conv-1",
            Message(text="Hi!", quick_replies=[QuickReplyAction(title="Order Now", payload="CREATE_NEW_ORDER_FLOW")]),
        )

        transcript = store.transcript("conv-1")
        assert [message.text for message in transcript] == ["hello", "Hi!"]
        assert transcript[0].sender == MessageSender.CUSTOMER
        assert transcript[1].quick_replies[0].payload == "CREATE_NEW_ORDER_FLOW"

    def test_set_ai_active(self, db_session):
        store = ConversationStore(db_session)
        store.load_or_create("shop-1", "conv-1")

        assert not store.set_ai_active("conv-1", False).is_ai_active
        assert store.get("conv-1").is_ai_active is False
        with pytest.raises(ConversationNotFoundError):
            store.set_ai_active("missing", True)

    def test_save_keeps_ai_active_flag(self, db_session):
        store = ConversationStore(db_session)
        stale = store.load_or_create("shop-1", "conv-1")
        store.set_ai_active("conv-1", False)

        saved = store.save(stale.model_copy(update={"state": ConversationState.AWAITING_ORDER_ID_FOR_STATUS}))

        assert saved.is_ai_active is False
        assert saved.state == ConversationState.AWAITING_ORDER_ID_FOR_STATUS

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Conversation
from app.models import Message as MessageRow
from app.schemas.message import Message
from app.services.state_machine import ConversationState

logger = get_logger("conversation_service")


class ConversationNotFoundError(Exception):
    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConversationSnapshot(BaseModel):
    """Per-conversation state as seen by one turn."""

    model_config = ConfigDict(frozen=True)

    id: str
    shop_id: str
    state: ConversationState = ConversationState.IDLE
    is_ai_active: bool = True
    is_loading: bool = False
    chat_history: list[dict[str, Any]] = []
    tags: list[str] = []
    last_record_id: Optional[str] = None
    awaiting_proof_for_order_id: Optional[str] = None
    awaiting_proof_until: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Conversation) -> "ConversationSnapshot":
        return cls(
            id=row.id,
            shop_id=row.shop_id,
            state=ConversationState(row.state),
            is_ai_active=row.is_ai_active,
            is_loading=row.is_loading,
            chat_history=list(row.chat_history or []),
            tags=list(row.tags or []),
            last_record_id=row.last_record_id,
            awaiting_proof_for_order_id=row.awaiting_proof_for_order_id,
            awaiting_proof_until=_utc(row.awaiting_proof_until),
        )


class ConversationStore:
    """Conversation rows and their transcripts."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, conversation_id: str) -> Optional[Conversation]:
        return self.db.query(Conversation).filter(Conversation.id == conversation_id).first()

    def get(self, conversation_id: str) -> Optional[ConversationSnapshot]:
        row = self._row(conversation_id)
        return ConversationSnapshot.from_row(row) if row else None

    def load_or_create(self, shop_id: str, conversation_id: str) -> ConversationSnapshot:
        """Find the conversation or start a new one. A conversation never moves between shops."""
        row = self._row(conversation_id)
        if row is None:
            row = Conversation(
                id=conversation_id,
                shop_id=shop_id,
                state=ConversationState.IDLE.value,
                is_ai_active=True,
                is_loading=False,
                chat_history=[],
                tags=[],
                started_at=datetime.now(timezone.utc),
            )
            self.db.add(row)
            self.db.commit()
            logger.info(
                "Conversation started",
                extra={"context": {"conversation_id": conversation_id, "shop_id": shop_id}},
            )
        elif row.shop_id != shop_id:
            raise ConversationNotFoundError(conversation_id)
        return ConversationSnapshot.from_row(row)

    def append_message(self, conversation_id: str, message: Message) -> None:
        now = datetime.now(timezone.utc)
        self.db.add(
            MessageRow(
                conversation_id=conversation_id,
                sender=message.sender.value,
                text=message.text,
                content=message.model_dump(mode="json", exclude_none=True),
                created_at=now,
            )
        )
        row = self._row(conversation_id)
        if row is not None:
            row.last_message_at = now
        self.db.commit()

    def transcript(self, conversation_id: str) -> list[Message]:
        rows = (
            self.db.query(MessageRow)
            .filter(MessageRow.conversation_id == conversation_id)
            .order_by(MessageRow.id)
            .all()
        )
        return [Message.model_validate(row.content) for row in rows]

    def save(self, snapshot: ConversationSnapshot) -> ConversationSnapshot:
        """Write the snapshot back and commit everything pending in the session.

        ``is_ai_active`` is left untouched; only ``set_ai_active`` changes it.
        """
        row = self._row(snapshot.id)
        if row is None:
            raise ConversationNotFoundError(snapshot.id)
        row.state = snapshot.state.value
        row.is_loading = snapshot.is_loading
        row.chat_history = list(snapshot.chat_history)
        row.tags = list(snapshot.tags)
        row.last_record_id = snapshot.last_record_id
        row.awaiting_proof_for_order_id = snapshot.awaiting_proof_for_order_id
        row.awaiting_proof_until = snapshot.awaiting_proof_until
        self.db.commit()
        return ConversationSnapshot.from_row(row)

    def discard(self) -> None:
        """Drop uncommitted writes from a failed turn."""
        self.db.rollback()

    def set_ai_active(self, conversation_id: str, is_active: bool) -> ConversationSnapshot:
        row = self._row(conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        row.is_ai_active = is_active
        self.db.commit()
        logger.info(
            "AI active flag changed",
            extra={"context": {"conversation_id": conversation_id, "is_ai_active": is_active}},
        )
        return ConversationSnapshot.from_row(row)

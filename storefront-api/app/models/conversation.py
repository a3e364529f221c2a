from sqlalchemy import JSON, Boolean, Column, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Text, primary_key=True)
    shop_id = Column(Text, nullable=False, index=True)
    state = Column(Text, nullable=False, default="idle")  # see ConversationState
    is_ai_active = Column(Boolean, nullable=False, default=True)
    is_loading = Column(Boolean, nullable=False, default=False)
    chat_history = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    tags = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    last_record_id = Column(Text)
    awaiting_proof_for_order_id = Column(Text)
    awaiting_proof_until = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True), nullable=False)
    last_message_at = Column(DateTime(timezone=True))

    messages = relationship("Message", back_populates="conversation", order_by="Message.id")

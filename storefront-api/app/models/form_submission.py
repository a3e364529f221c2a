import uuid

from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from app.database import Base


class FormSubmission(Base):
    __tablename__ = "form_submissions"
    __table_args__ = (UniqueConstraint("shop_id", "order_id", name="uq_form_submissions_shop_order"),)

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    shop_id = Column(Text, nullable=False, index=True)
    conversation_id = Column(Text)
    order_id = Column(Text)
    form_id = Column(Text, nullable=False, default="")
    form_name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="Pending")
    ordered_products = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    fields = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    phone_number = Column(Text, index=True)
    payment_method = Column(Text)
    payment_screenshot_url = Column(Text)
    submitted_at = Column(DateTime(timezone=True), nullable=False)

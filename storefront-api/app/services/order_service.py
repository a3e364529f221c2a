import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import FormSubmission
from app.schemas.order import CreateBookingArgs, CreateOrderArgs, OrderedItem, OrderRecord, OrderStatus
from app.schemas.shop import CatalogItem, ShopConfig
from app.services.result import Result

logger = get_logger("order_service")

FIRST_SEQUENCE_NUMBER = 1001
BOOKING_ID_PREFIX = "BK"
CONVERSATIONAL_ORDER_FORM = "Conversational Order"
CONVERSATIONAL_BOOKING_FORM = "Conversational Booking"


def shop_prefix(shop: ShopConfig) -> str:
    """Order id prefix: configured value, else up to four initials of the shop name padded with X."""
    if shop.order_id_prefix and shop.order_id_prefix.strip():
        return shop.order_id_prefix.strip().upper()
    initials = "".join(word[0].upper() for word in shop.name.split() if word)
    return initials[:4].ljust(4, "X")


def _to_record(row: FormSubmission) -> OrderRecord:
    submitted_at = row.submitted_at
    if submitted_at is not None and submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=timezone.utc)
    return OrderRecord(
        submission_id=row.id,
        shop_id=row.shop_id,
        order_id=row.order_id,
        form_id=row.form_id or "",
        form_name=row.form_name,
        status=OrderStatus(row.status),
        ordered_products=[OrderedItem.model_validate(item) for item in row.ordered_products or []],
        fields=dict(row.fields or {}),
        payment_method=row.payment_method,
        payment_screenshot_url=row.payment_screenshot_url,
        conversation_id=row.conversation_id,
        submitted_at=submitted_at,
    )


class RecordStore:
    """Orders and bookings created from conversations.

    Writes are flushed, not committed: the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _next_order_id(self, shop_id: str, prefix: str) -> str:
        rows = (
            self.db.query(FormSubmission.order_id)
            .filter(FormSubmission.shop_id == shop_id, FormSubmission.order_id.like(f"{prefix}-%"))
            .all()
        )
        sequence = re.compile(rf"{re.escape(prefix)}-(\d+)")
        highest = FIRST_SEQUENCE_NUMBER - 1
        for (order_id,) in rows:
            match = sequence.fullmatch(order_id or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix}-{highest + 1}"

    def _insert(self, record: OrderRecord) -> OrderRecord:
        row = FormSubmission(
            id=record.submission_id,
            shop_id=record.shop_id,
            conversation_id=record.conversation_id,
            order_id=record.order_id,
            form_id=record.form_id,
            form_name=record.form_name,
            status=record.status.value,
            ordered_products=[item.model_dump() for item in record.ordered_products],
            fields=dict(record.fields),
            phone_number=record.fields.get("Phone Number"),
            payment_method=record.payment_method,
            payment_screenshot_url=record.payment_screenshot_url,
            submitted_at=record.submitted_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_record(row)

    def create_order(
        self, shop: ShopConfig, conversation_id: Optional[str], args: CreateOrderArgs
    ) -> Result[OrderRecord]:
        items: list[OrderedItem] = []
        for line in args.products:
            catalog_item = _find_by_name(shop, line.product_name)
            if catalog_item is None:
                return Result.failure(f"Unknown product: {line.product_name}", "unknown_product")
            items.append(
                OrderedItem(
                    product_id=catalog_item.id,
                    product_name=catalog_item.name,
                    quantity=line.quantity,
                    unit_price=catalog_item.price,
                )
            )

        record = OrderRecord(
            submission_id=_new_submission_id(),
            shop_id=shop.id,
            order_id=self._next_order_id(shop.id, shop_prefix(shop)),
            form_id=shop.default_order_form_id or "",
            form_name=CONVERSATIONAL_ORDER_FORM,
            ordered_products=items,
            fields={
                "Full Name": args.customer_name,
                "Phone Number": args.phone_number,
                "Full Shipping Address": args.shipping_address,
            },
            payment_method=args.payment_method,
            conversation_id=conversation_id,
            submitted_at=datetime.now(timezone.utc),
        )
        record = self._insert(record)
        logger.info(
            "Conversational order created",
            extra={"context": {"shop_id": shop.id, "order_id": record.order_id, "items": len(items)}},
        )
        return Result.success(record)

    def create_booking(
        self, shop: ShopConfig, conversation_id: Optional[str], args: CreateBookingArgs
    ) -> Result[OrderRecord]:
        service = _find_by_name(shop, args.service_name)
        if service is None:
            return Result.failure(f"Unknown service: {args.service_name}", "unknown_service")

        prefix = f"{BOOKING_ID_PREFIX}-{shop_prefix(shop)}"
        record = OrderRecord(
            submission_id=_new_submission_id(),
            shop_id=shop.id,
            order_id=self._next_order_id(shop.id, prefix),
            form_name=CONVERSATIONAL_BOOKING_FORM,
            ordered_products=[
                OrderedItem(product_id=service.id, product_name=service.name, quantity=1, unit_price=service.price)
            ],
            fields={
                "Customer Name": args.customer_name,
                "Phone Number": args.phone_number,
                "Appointment Date": args.appointment_date,
                "Appointment Time": args.appointment_time,
            },
            conversation_id=conversation_id,
            submitted_at=datetime.now(timezone.utc),
        )
        record = self._insert(record)
        logger.info(
            "Conversational booking created",
            extra={"context": {"shop_id": shop.id, "order_id": record.order_id, "service": service.name}},
        )
        return Result.success(record)

    def get_record(self, shop_id: str, order_id: str) -> Optional[OrderRecord]:
        row = (
            self.db.query(FormSubmission)
            .filter(FormSubmission.shop_id == shop_id, FormSubmission.order_id == order_id)
            .first()
        )
        return _to_record(row) if row else None

    def lookup_record(self, shop_id: str, order_id_or_phone: str) -> Optional[OrderRecord]:
        """Find a record by exact order id or by the customer's phone number, newest first."""
        row = (
            self.db.query(FormSubmission)
            .filter(
                FormSubmission.shop_id == shop_id,
                or_(
                    FormSubmission.order_id == order_id_or_phone,
                    FormSubmission.phone_number == order_id_or_phone,
                ),
            )
            .order_by(FormSubmission.submitted_at.desc())
            .first()
        )
        return _to_record(row) if row else None

    def save_record(self, record: OrderRecord) -> OrderRecord:
        """Persist the mutable parts of an existing record in one write."""
        row = (
            self.db.query(FormSubmission)
            .filter(FormSubmission.shop_id == record.shop_id, FormSubmission.id == record.submission_id)
            .one()
        )
        row.status = record.status.value
        row.payment_method = record.payment_method
        row.payment_screenshot_url = record.payment_screenshot_url
        row.fields = dict(record.fields)
        row.phone_number = record.fields.get("Phone Number")
        row.ordered_products = [item.model_dump() for item in record.ordered_products]
        self.db.flush()
        return _to_record(row)


def _find_by_name(shop: ShopConfig, name: str) -> Optional[CatalogItem]:
    wanted = name.strip().lower()
    return next((item for item in shop.items if item.name.strip().lower() == wanted), None)


def _new_submission_id() -> str:
    return str(uuid.uuid4())

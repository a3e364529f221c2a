from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.logging_config import get_logger
from app.schemas.message import Message
from app.schemas.order import OrderRecord, OrderStatus
from app.schemas.shop import ShopConfig
from app.services.conversation_service import ConversationSnapshot
from app.services.locale_service import translate
from app.services.order_service import RecordStore
from app.services.result import Result

logger = get_logger("payment_proof_service")

PAYMENT_SUBMITTED_TAG = "Payment-Submitted"
ORDER_TAG_PREFIX = "Order ID:"


@dataclass
class ProofOutcome:
    snapshot: ConversationSnapshot
    message: Message
    record: Optional[OrderRecord] = None


def requires_proof(shop: ShopConfig, record: OrderRecord) -> bool:
    wanted = (record.payment_method or "").strip().lower()
    return any(method.requires_proof for method in shop.payment_methods if method.name.strip().lower() == wanted)


def start_proof_window(
    snapshot: ConversationSnapshot, shop: ShopConfig, record: OrderRecord, now: datetime
) -> ConversationSnapshot:
    """Wait for a payment screenshot after an order whose payment method needs one."""
    config = shop.payment_intelligence
    if not config.enabled or not record.order_id or not requires_proof(shop, record):
        return snapshot
    tags = [tag for tag in snapshot.tags if not tag.startswith(ORDER_TAG_PREFIX)]
    tags.append(f"{ORDER_TAG_PREFIX} {record.order_id}")
    logger.info(
        "Awaiting payment proof",
        extra={"context": {"conversation_id": snapshot.id, "order_id": record.order_id}},
    )
    return snapshot.model_copy(
        update={
            "awaiting_proof_for_order_id": record.order_id,
            "awaiting_proof_until": now + timedelta(minutes=config.time_window_minutes),
            "tags": tags,
        }
    )


def _close_window(snapshot: ConversationSnapshot, **updates) -> ConversationSnapshot:
    return snapshot.model_copy(
        update={"awaiting_proof_for_order_id": None, "awaiting_proof_until": None, **updates}
    )


def handle_payment_proof(
    snapshot: ConversationSnapshot,
    shop: ShopConfig,
    records: RecordStore,
    screenshot_url: str,
    now: datetime,
) -> Result[ProofOutcome]:
    """Treat an incoming image as payment proof when the conversation is waiting for one.

    Failure codes tell the caller the image was not a payment proof.
    """
    config = shop.payment_intelligence
    order_id = snapshot.awaiting_proof_for_order_id
    if not config.enabled:
        return Result.failure("Payment intelligence is disabled", "disabled")
    if not order_id or snapshot.awaiting_proof_until is None:
        return Result.failure("Conversation is not waiting for payment proof", "no_window")
    if now >= snapshot.awaiting_proof_until:
        return Result.failure(f"Payment proof window for {order_id} has closed", "expired")

    record = records.get_record(shop.id, order_id)
    if record is None:
        return Result.failure(f"Order {order_id} not found", "not_found")

    language = shop.assistant_config.language
    if record.status != OrderStatus.PENDING:
        logger.info(
            "Payment proof for processed order",
            extra={"context": {"order_id": order_id, "status": record.status.value}},
        )
        return Result.success(
            ProofOutcome(
                snapshot=_close_window(snapshot),
                message=Message(text=translate("payment_proof_already_processed", language, order_id=order_id)),
            )
        )

    updated = records.save_record(
        record.model_copy(update={"payment_screenshot_url": screenshot_url, "status": config.status_on_proof})
    )
    tags = [tag for tag in snapshot.tags if not tag.startswith(ORDER_TAG_PREFIX)]
    if PAYMENT_SUBMITTED_TAG not in tags:
        tags.append(PAYMENT_SUBMITTED_TAG)

    template = config.confirmation_message or translate("payment_proof_confirmation", language)
    logger.info(
        "Payment proof received",
        extra={"context": {"order_id": order_id, "status": updated.status.value}},
    )
    return Result.success(
        ProofOutcome(
            snapshot=_close_window(snapshot, tags=tags),
            message=Message(text=template.replace("{{orderId}}", order_id)),
            record=updated,
        )
    )

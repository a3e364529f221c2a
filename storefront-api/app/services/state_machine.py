from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from app.logging_config import get_logger
from app.schemas.message import Message
from app.schemas.order import OrderRecord
from app.schemas.shop import ShopConfig
from app.services.recap_service import format_recap

logger = get_logger("state_machine")


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_ORDER_ID_FOR_STATUS = "awaiting_order_id_for_status"
    AWAITING_ORDER_ID_FOR_UPDATE = "awaiting_order_id_for_update"
    AWAITING_ORDER_ID_FOR_CANCELLATION = "awaiting_order_id_for_cancellation"
    AWAITING_UPDATE_CHOICE = "awaiting_update_choice"
    AWAITING_ADDRESS_UPDATE = "awaiting_address_update"
    AWAITING_PHONE_UPDATE = "awaiting_phone_update"
    AWAITING_CANCELLATION_CONFIRMATION = "awaiting_cancellation_confirmation"


# Every state may fall back to idle.
VALID_TRANSITIONS = {
    ConversationState.IDLE: [
        ConversationState.AWAITING_ORDER_ID_FOR_STATUS,
        ConversationState.AWAITING_ORDER_ID_FOR_UPDATE,
        ConversationState.AWAITING_ORDER_ID_FOR_CANCELLATION,
    ],
    ConversationState.AWAITING_ORDER_ID_FOR_STATUS: [ConversationState.IDLE],
    ConversationState.AWAITING_ORDER_ID_FOR_UPDATE: [
        ConversationState.IDLE,
        ConversationState.AWAITING_UPDATE_CHOICE,
    ],
    ConversationState.AWAITING_UPDATE_CHOICE: [
        ConversationState.IDLE,
        ConversationState.AWAITING_ADDRESS_UPDATE,
        ConversationState.AWAITING_PHONE_UPDATE,
    ],
    ConversationState.AWAITING_ADDRESS_UPDATE: [ConversationState.IDLE],
    ConversationState.AWAITING_PHONE_UPDATE: [ConversationState.IDLE],
    ConversationState.AWAITING_ORDER_ID_FOR_CANCELLATION: [
        ConversationState.IDLE,
        ConversationState.AWAITING_CANCELLATION_CONFIRMATION,
    ],
    ConversationState.AWAITING_CANCELLATION_CONFIRMATION: [ConversationState.IDLE],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: ConversationState, to_state: ConversationState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: ConversationState, to_state: ConversationState) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: ConversationState, to_state: ConversationState) -> ConversationState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def enter_flow(current_state: ConversationState, flow_state: ConversationState) -> ConversationState:
    """Start a multi-step flow from the current state."""
    return transition(current_state, flow_state)


def reset(current_state: ConversationState) -> ConversationState:
    """Abandon whatever flow is in progress."""
    if current_state == ConversationState.IDLE:
        return current_state
    return transition(current_state, ConversationState.IDLE)


class RecordLookup(Protocol):
    def lookup_record(self, shop_id: str, order_id_or_phone: str) -> Optional[OrderRecord]: ...


@dataclass
class StepOutcome:
    handled: bool
    next_state: ConversationState
    message: Optional[Message] = None


def _check_order_status(payload: str, shop: ShopConfig, records: RecordLookup) -> StepOutcome:
    strings = shop.order_flow.strings
    query = payload.strip()
    record = records.lookup_record(shop.id, query) if query else None
    if record is None:
        logger.info("Order lookup missed", extra={"context": {"shop_id": shop.id}})
        text = strings.order_not_found
    else:
        text = format_recap(record, strings.order_status_summary)
    next_state = reset(ConversationState.AWAITING_ORDER_ID_FOR_STATUS)
    return StepOutcome(handled=True, next_state=next_state, message=Message(text=text))


def advance_conversation(
    state: ConversationState,
    payload: str,
    shop: ShopConfig,
    records: RecordLookup,
) -> StepOutcome:
    """Feed a customer payload into an in-progress flow.

    Only the order-status lookup is wired. Any other non-idle state is reported as
    unhandled and dropped back to idle so the turn continues with the command table.
    """
    if state == ConversationState.AWAITING_ORDER_ID_FOR_STATUS:
        return _check_order_status(payload, shop, records)

    if state != ConversationState.IDLE:
        logger.info(
            "Unhandled conversation state, resetting",
            extra={"context": {"shop_id": shop.id, "state": state.value}},
        )
    return StepOutcome(handled=False, next_state=reset(state))

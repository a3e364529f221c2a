from unittest.mock import Mock

import pytest

from app.schemas.order import OrderedItem, OrderRecord
from app.services.state_machine import (
    ConversationState,
    InvalidTransitionError,
    advance_conversation,
    can_transition,
    enter_flow,
    reset,
    transition,
)


class TestValidTransitions:
    def test_idle_to_awaiting_status(self):
        result = transition(ConversationState.IDLE, ConversationState.AWAITING_ORDER_ID_FOR_STATUS)
        assert result == ConversationState.AWAITING_ORDER_ID_FOR_STATUS

    def test_update_chain(self):
        state = enter_flow(ConversationState.IDLE, ConversationState.AWAITING_ORDER_ID_FOR_UPDATE)
        state = transition(state, ConversationState.AWAITING_UPDATE_CHOICE)
        state = transition(state, ConversationState.AWAITING_ADDRESS_UPDATE)
        assert reset(state) == ConversationState.IDLE

    def test_every_state_can_reset(self):
        for state in ConversationState:
            assert reset(state) == ConversationState.IDLE


class TestInvalidTransitions:
    def test_idle_to_update_choice(self):
        with pytest.raises(InvalidTransitionError):
            transition(ConversationState.IDLE, ConversationState.AWAITING_UPDATE_CHOICE)

    def test_same_state(self):
        assert not can_transition(ConversationState.IDLE, ConversationState.IDLE)

    def test_error_message(self):
        with pytest.raises(InvalidTransitionError, match="awaiting_phone_update -> awaiting_update_choice"):
            transition(ConversationState.AWAITING_PHONE_UPDATE, ConversationState.AWAITING_UPDATE_CHOICE)


class TestAdvanceConversation:
    def test_status_lookup_hit(self, shop):
        records = Mock()
        records.lookup_record.return_value = OrderRecord(
            submission_id="s1",
            shop_id=shop.id,
            order_id="TCCS-1001",
            form_name="Conversational Order",
            ordered_products=[OrderedItem(product_name="Green Tea", quantity=3, unit_price=6500)],
        )
        outcome = advance_conversation(ConversationState.AWAITING_ORDER_ID_FOR_STATUS, " TCCS-1001 ", shop, records)

        records.lookup_record.assert_called_once_with(shop.id, "TCCS-1001")
        assert outcome.handled
        assert outcome.next_state == ConversationState.IDLE
        assert "Order TCCS-1001" in outcome.message.text
        assert "Total: 19,500" in outcome.message.text
        assert outcome.message.quick_replies is None

    def test_status_lookup_miss(self, shop):
        records = Mock()
        records.lookup_record.return_value = None
        outcome = advance_conversation(ConversationState.AWAITING_ORDER_ID_FOR_STATUS, "nope", shop, records)

        assert outcome.handled
        assert outcome.next_state == ConversationState.IDLE
        assert outcome.message.text == shop.order_flow.strings.order_not_found

    def test_unwired_state_falls_through(self, shop):
        records = Mock()
        outcome = advance_conversation(ConversationState.AWAITING_PHONE_UPDATE, "0999", shop, records)

        assert not outcome.handled
        assert outcome.next_state == ConversationState.IDLE
        assert outcome.message is None
        records.lookup_record.assert_not_called()

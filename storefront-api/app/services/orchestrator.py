import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.logging_config import get_logger
from app.schemas.message import Attachment, Message, MessageSender, QuickReplyAction
from app.schemas.shop import Form, ShopConfig
from app.services.ai_service import AssistantService
from app.services.command_service import run_command
from app.services.conversation_service import ConversationSnapshot, ConversationStore
from app.services.keyword_service import match_keyword_rule
from app.services.llm import LLMProviderError
from app.services.locale_service import translate
from app.services.order_service import RecordStore
from app.services.payment_proof_service import handle_payment_proof, start_proof_window
from app.services.recap_service import is_booking
from app.services.scheduler import ReplyScheduler
from app.services.state_machine import ConversationState, advance_conversation, enter_flow
from app.services.suggestion_service import rank_quick_replies

logger = get_logger("orchestrator")

# Failures that end a turn with an apology instead of an error response.
TURN_FAILURES = (LLMProviderError, httpx.HTTPError, SQLAlchemyError, ValueError)

IMAGE_FALLBACK_TEXT = "[user sent image]"
WELCOME_INTENT_TEXT = "hello"


@dataclass
class TurnOutcome:
    conversation_id: str
    state: ConversationState
    is_ai_active: bool
    message: Optional[Message] = None
    open_form: Optional[Form] = None
    record_id: Optional[str] = None
    handled_by: str = "none"


@dataclass
class _Reply:
    snapshot: ConversationSnapshot
    message: Optional[Message]
    handled_by: str
    open_form: Optional[Form] = None
    record_id: Optional[str] = None
    disable_ai: bool = False
    extra: dict = field(default_factory=dict)


class TurnOrchestrator:
    """Decides how each customer turn is answered.

    In order: an in-progress flow, the command table, the human-handover gate,
    keyword automations, then the AI assistant. Whatever message comes out gets
    quick replies ranked for it unless the handler chose its own.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        records: RecordStore,
        assistant: AssistantService,
        scheduler: ReplyScheduler,
        max_delay_seconds: float = settings.max_response_delay_seconds,
    ):
        self.conversations = conversations
        self.records = records
        self.assistant = assistant
        self.scheduler = scheduler
        self.max_delay_seconds = max_delay_seconds

    def _delay_for(self, shop: ShopConfig) -> float:
        return min(max(shop.assistant_config.response_delay, 0.0), self.max_delay_seconds)

    def _rank(self, shop: ShopConfig, message: Optional[Message], customer_text: str) -> Optional[Message]:
        if message is None or message.quick_replies is not None or message.carousel:
            return message
        quick_replies = rank_quick_replies(shop, None, customer_text, message)
        return message.model_copy(update={"quick_replies": quick_replies})

    def _apology(self, shop: ShopConfig) -> Message:
        return Message(text=translate("generic_apology", shop.assistant_config.language))

    def _begin(self, shop: ShopConfig, conversation_id: str, customer_message: Message) -> ConversationSnapshot:
        snapshot = self.conversations.load_or_create(shop.id, conversation_id)
        self.conversations.append_message(conversation_id, customer_message)
        return self.conversations.save(snapshot.model_copy(update={"is_loading": True}))

    async def _finish(self, shop: ShopConfig, reply: _Reply, customer_text: str) -> TurnOutcome:
        conversation_id = reply.snapshot.id
        message = self._rank(shop, reply.message, customer_text)
        if message is not None:
            delivered = await self.scheduler.deliver(
                conversation_id,
                self._delay_for(shop),
                lambda: self.conversations.append_message(conversation_id, message),
            )
            if not delivered:
                message = None
        if reply.disable_ai:
            await asyncio.to_thread(self.conversations.set_ai_active, conversation_id, False)
        snapshot = await asyncio.to_thread(
            self.conversations.save, reply.snapshot.model_copy(update={"is_loading": False})
        )
        logger.info(
            "Turn handled",
            extra={
                "context": {
                    "conversation_id": conversation_id,
                    "shop_id": shop.id,
                    "handled_by": reply.handled_by,
                    "state": snapshot.state.value,
                    **reply.extra,
                }
            },
        )
        return TurnOutcome(
            conversation_id=conversation_id,
            state=snapshot.state,
            is_ai_active=snapshot.is_ai_active,
            message=message,
            open_form=reply.open_form,
            record_id=reply.record_id,
            handled_by=reply.handled_by,
        )

    def _fail_closed(self, shop: ShopConfig, snapshot: ConversationSnapshot, exc: Exception) -> _Reply:
        logger.error(
            "Turn failed",
            extra={
                "context": {
                    "conversation_id": snapshot.id,
                    "shop_id": shop.id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            },
        )
        self.conversations.discard()
        return _Reply(snapshot=snapshot, message=self._apology(shop), handled_by="error")

    async def _dispatch(self, shop: ShopConfig, snapshot: ConversationSnapshot, payload: str) -> _Reply:
        if snapshot.state != ConversationState.IDLE:
            step = await asyncio.to_thread(advance_conversation, snapshot.state, payload, shop, self.records)
            snapshot = snapshot.model_copy(update={"state": step.next_state})
            if step.handled:
                return _Reply(snapshot=snapshot, message=step.message, handled_by="state_machine")

        command = run_command(shop, payload)
        if command is not None:
            if command.next_state is not None:
                snapshot = snapshot.model_copy(update={"state": enter_flow(snapshot.state, command.next_state)})
            return _Reply(
                snapshot=snapshot,
                message=command.message,
                handled_by="command",
                open_form=command.open_form,
                disable_ai=command.disable_ai,
            )

        if not snapshot.is_ai_active:
            return _Reply(snapshot=snapshot, message=None, handled_by="human_agent")

        rule = match_keyword_rule(payload, shop.keyword_rules, "chat")
        if rule is not None:
            message = Message(
                text=rule.reply,
                attachment=rule.attachment,
                persistent_buttons=list(rule.buttons) or None,
            )
            return _Reply(snapshot=snapshot, message=message, handled_by="keyword", extra={"rule_id": rule.id})

        answer = await self.assistant.respond(shop, snapshot.id, snapshot.chat_history, payload)
        updates = {"chat_history": answer.history}
        record_id = None
        if answer.record is not None:
            record_id = answer.record.order_id
            updates["last_record_id"] = record_id
            snapshot = snapshot.model_copy(update=updates)
            if not is_booking(answer.record):
                snapshot = start_proof_window(snapshot, shop, answer.record, datetime.now(timezone.utc))
        else:
            snapshot = snapshot.model_copy(update=updates)
        return _Reply(snapshot=snapshot, message=Message(text=answer.text), handled_by="assistant", record_id=record_id)

    async def handle_turn(
        self,
        shop: ShopConfig,
        conversation_id: str,
        payload: str,
        display_text: Optional[str] = None,
    ) -> TurnOutcome:
        """Answer one customer message or button press."""
        async with self.scheduler.turn(conversation_id):
            customer_message = Message(sender=MessageSender.CUSTOMER, text=display_text or payload)
            snapshot = await asyncio.to_thread(self._begin, shop, conversation_id, customer_message)
            try:
                reply = await self._dispatch(shop, snapshot, payload)
            except TURN_FAILURES as exc:
                reply = self._fail_closed(shop, snapshot, exc)
            return await self._finish(shop, reply, payload)

    async def handle_quick_reply(
        self, shop: ShopConfig, conversation_id: str, reply: QuickReplyAction
    ) -> TurnOutcome:
        if reply.kind != "open_form":
            return await self.handle_turn(shop, conversation_id, reply.payload, reply.title)

        snapshot = await asyncio.to_thread(self.conversations.load_or_create, shop.id, conversation_id)
        form = shop.find_form(reply.payload)
        return TurnOutcome(
            conversation_id=conversation_id,
            state=snapshot.state,
            is_ai_active=snapshot.is_ai_active,
            open_form=form,
            handled_by="open_form",
        )

    async def handle_attachment(self, shop: ShopConfig, conversation_id: str, attachment: Attachment) -> TurnOutcome:
        """Customer sent a picture. Inside a payment-proof window it settles the order."""
        async with self.scheduler.turn(conversation_id):
            customer_message = Message(sender=MessageSender.CUSTOMER, text="", attachment=attachment)
            snapshot = await asyncio.to_thread(self._begin, shop, conversation_id, customer_message)
            customer_text = IMAGE_FALLBACK_TEXT
            try:
                proof = await asyncio.to_thread(
                    handle_payment_proof, snapshot, shop, self.records, attachment.url, datetime.now(timezone.utc)
                )
            except SQLAlchemyError as exc:
                reply = self._fail_closed(shop, snapshot, exc)
            else:
                if proof.ok:
                    customer_text = ""
                    reply = _Reply(
                        snapshot=proof.value.snapshot,
                        message=proof.value.message,
                        handled_by="payment_proof",
                        record_id=proof.value.record.order_id if proof.value.record else None,
                    )
                else:
                    message = Message(text=translate("image_received_fallback", shop.assistant_config.language))
                    reply = _Reply(
                        snapshot=snapshot,
                        message=message,
                        handled_by="image_fallback",
                        extra={"reason": proof.error_code},
                    )
            return await self._finish(shop, reply, customer_text)

    def _greet(self, shop: ShopConfig, conversation_id: str) -> tuple[ConversationSnapshot, Optional[Message]]:
        snapshot = self.conversations.load_or_create(shop.id, conversation_id)
        if self.conversations.transcript(conversation_id):
            return snapshot, None
        welcome = Message(text=translate("preview_welcome", shop.assistant_config.language))
        message = self._rank(shop, welcome, WELCOME_INTENT_TEXT)
        self.conversations.append_message(conversation_id, message)
        return snapshot, message

    async def open_conversation(self, shop: ShopConfig, conversation_id: str) -> TurnOutcome:
        """Greet a customer the first time the widget opens."""
        async with self.scheduler.turn(conversation_id):
            snapshot, message = await asyncio.to_thread(self._greet, shop, conversation_id)
            return TurnOutcome(
                conversation_id=conversation_id,
                state=snapshot.state,
                is_ai_active=snapshot.is_ai_active,
                message=message,
                handled_by="welcome" if message else "none",
            )

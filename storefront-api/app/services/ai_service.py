import json
import time
from dataclasses import dataclass, field
from typing import List, Optional

from app.config import settings
from app.logging_config import get_logger
from app.schemas.order import CreateBookingArgs, CreateOrderArgs, OrderRecord
from app.schemas.shop import ShopConfig
from app.services.llm import LLMProvider, LLMResponse, OpenAIProvider, ToolCall
from app.services.locale_service import translate
from app.services.order_service import RecordStore
from app.services.recap_service import format_amount, is_booking
from app.services.result import Result

logger = get_logger("ai_service")

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant for an online shop."

KNOWLEDGE_BASE_INTRO = (
    "Your primary role is to answer questions about the shop using the following information "
    "as your source of truth. If a user asks a general conversational question (like \"hello\") "
    "that isn't in the data, respond in a friendly, conversational manner. Do not invent specific "
    "details (like policies or products) that are not present in this knowledge base."
)

COMMERCE_INSTRUCTIONS = (
    "Conversational commerce rules:\n"
    "1. Collect every detail a tool needs before calling it, and read the details back to the customer.\n"
    "2. Only call a tool after the customer explicitly confirms.\n"
    "3. Use create_conversational_order for products and create_booking for services.\n"
    "4. After a tool returns an id, tell the customer the id.\n"
    "5. If the chosen payment method requires proof, ask the customer to send a screenshot of "
    "the payment now."
)

TONE_DESCRIPTIONS = {
    "male": "Speak as a polite male shop assistant.",
    "female": "Speak as a polite female shop assistant.",
    "neutral": "Speak in a friendly, neutral tone.",
}

TOOL_CREATE_ORDER = "create_conversational_order"
TOOL_CREATE_BOOKING = "create_booking"

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": TOOL_CREATE_ORDER,
            "description": (
                "Creates a customer order for physical products when all necessary information has "
                "been collected AND the user has explicitly confirmed the order details. Only use this "
                'for items with an item type of "product".'
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "customerName": {"type": "string", "description": "The full name of the customer."},
                    "phoneNumber": {"type": "string", "description": "The contact phone number."},
                    "shippingAddress": {"type": "string", "description": "The full shipping address."},
                    "products": {
                        "type": "array",
                        "description": "Products the customer wants to order.",
                        "items": {
                            "type": "object",
                            "properties": {
                                "productName": {
                                    "type": "string",
                                    "description": "Must match a product name from the catalog.",
                                },
                                "quantity": {"type": "integer", "description": "Quantity to order."},
                            },
                            "required": ["productName", "quantity"],
                        },
                    },
                    "paymentMethod": {
                        "type": "string",
                        "description": "Must match one of the shop's payment methods.",
                    },
                },
                "required": ["customerName", "phoneNumber", "shippingAddress", "products", "paymentMethod"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": TOOL_CREATE_BOOKING,
            "description": (
                "Books a service for a customer when all necessary information has been collected and "
                'the user has confirmed the details. Only use this for items with an item type of "service".'
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "customerName": {"type": "string", "description": "The full name of the customer."},
                    "phoneNumber": {"type": "string", "description": "The contact phone number."},
                    "serviceName": {"type": "string", "description": "Must match a service from the catalog."},
                    "appointmentDate": {"type": "string", "description": 'Requested date, e.g. "2024-08-15".'},
                    "appointmentTime": {"type": "string", "description": 'Requested time, e.g. "14:30".'},
                },
                "required": ["customerName", "phoneNumber", "serviceName", "appointmentDate", "appointmentTime"],
            },
        },
    },
]

_llm_provider: Optional[LLMProvider] = None


def get_llm_provider() -> LLMProvider:
    """Get or create LLM provider instance."""
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = OpenAIProvider(
            api_key=settings.openai_api_key,
            default_model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    return _llm_provider


def _log_timing(stage: str, elapsed_ms: float, context: dict) -> None:
    logger.info("Timing", extra={"context": {**context, "stage": stage, "elapsed_ms": round(elapsed_ms, 2)}})


def build_system_prompt(shop: ShopConfig) -> str:
    """Persona, style rules and the shop's knowledge, in that order."""
    assistant = shop.assistant_config
    parts = [DEFAULT_SYSTEM_PROMPT, COMMERCE_INSTRUCTIONS]
    parts.append(f"--- Your Persona for {shop.name} ---\n{assistant.system_prompt or DEFAULT_SYSTEM_PROMPT}")

    knowledge = [
        f"## {section.title}\n{section.content}"
        for section in shop.knowledge_base
        if section.content and section.content.strip()
    ]
    if shop.items:
        lines = []
        for item in shop.items:
            line = f"- {item.name} ({item.item_type}): {format_amount(item.price)} {shop.currency}"
            if item.category:
                line += f", category {item.category}"
            if item.description:
                line += f". {item.description}"
            lines.append(line)
        knowledge.append("## Item Catalog\n" + "\n".join(lines))
    enabled_methods = [method for method in shop.payment_methods if method.enabled]
    if enabled_methods:
        knowledge.append(
            "## Payment Methods\n"
            + "\n".join(
                f"- {method.name}: {method.instructions.replace(chr(10), ' ')} (Requires Proof: {method.requires_proof})"
                for method in enabled_methods
            )
        )
    if knowledge:
        parts.append("--- Knowledge Base ---\n" + KNOWLEDGE_BASE_INTRO + "\n" + "\n\n".join(knowledge))

    parts.append(
        "--- Core Directives & Style Guide ---\n"
        f"- {TONE_DESCRIPTIONS.get(assistant.tone, TONE_DESCRIPTIONS['neutral'])}\n"
        f"- Reply in the customer's language. The shop's default language is '{assistant.language}'."
    )
    return "\n\n".join(parts)


@dataclass
class AssistantReply:
    text: str
    history: List[dict] = field(default_factory=list)
    record: Optional[OrderRecord] = None


class AssistantService:
    """Generative fallback: one model call, plus a follow-up call when the model uses a tool."""

    def __init__(
        self,
        provider: LLMProvider,
        records: RecordStore,
        model: Optional[str] = None,
        temperature: float = settings.llm_temperature,
        max_tokens: int = settings.llm_max_tokens,
        history_limit: int = settings.llm_history_messages,
    ):
        self.provider = provider
        self.records = records
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.history_limit = history_limit

    async def _generate(self, messages: List[dict], context: dict) -> LLMResponse:
        started = time.monotonic()
        response = await self.provider.generate(
            messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            tools=TOOLS,
        )
        _log_timing("llm_ms", (time.monotonic() - started) * 1000, {**context, "model_name": response.model})
        return response

    def _run_tool(self, shop: ShopConfig, conversation_id: str, call: ToolCall) -> Result[OrderRecord]:
        # Malformed arguments raise pydantic.ValidationError and fail the turn.
        if call.name == TOOL_CREATE_ORDER:
            args = CreateOrderArgs.model_validate_json(call.arguments)
            return self.records.create_order(shop, conversation_id, args)
        if call.name == TOOL_CREATE_BOOKING:
            args = CreateBookingArgs.model_validate_json(call.arguments)
            return self.records.create_booking(shop, conversation_id, args)
        return Result.failure(f"Unknown tool: {call.name}", "unknown_tool")

    async def respond(
        self,
        shop: ShopConfig,
        conversation_id: str,
        history: List[dict],
        text: str,
    ) -> AssistantReply:
        """Answer ``text`` given the prior ``history``.

        Returns the reply with the history extended by this exchange. Provider and
        validation errors propagate to the caller.
        """
        context = {"shop_id": shop.id, "conversation_id": conversation_id}
        recent_history = list(history[-self.history_limit :]) if self.history_limit > 0 else []
        messages = [{"role": "system", "content": build_system_prompt(shop)}, *recent_history]
        messages.append({"role": "user", "content": text})

        response = await self._generate(messages, context)
        record: Optional[OrderRecord] = None

        if response.tool_calls:
            call = response.tool_calls[0]
            result = self._run_tool(shop, conversation_id, call)
            if result.ok:
                record = result.value
                tool_result = {"success": True, "orderId": record.order_id}
            else:
                logger.warning(
                    "Tool call rejected",
                    extra={"context": {**context, "tool": call.name, "error": result.error}},
                )
                tool_result = {"success": False, "error": result.error}
            follow_up = [
                *messages,
                response.as_assistant_message(),
                {"role": "tool", "tool_call_id": call.id, "content": json.dumps(tool_result)},
            ]
            response = await self._generate(follow_up, {**context, "tool": call.name})

        reply_text = response.content.strip()
        if record is not None and record.order_id and record.order_id not in reply_text:
            key = "booking_created_notice" if is_booking(record) else "order_created_notice"
            notice = translate(key, shop.assistant_config.language, record_id=record.order_id)
            reply_text = f"{notice}\n{reply_text}" if reply_text else notice

        new_history = [
            *history,
            {"role": "user", "content": text},
            {"role": "assistant", "content": reply_text},
        ]
        return AssistantReply(text=reply_text, history=new_history, record=record)

from typing import Callable, Iterable, Optional

from app.logging_config import get_logger
from app.schemas.message import Message, QuickReplyAction
from app.schemas.shop import ShopConfig
from app.services.intent_service import Intent, classify_intent
from app.services.locale_service import translate

logger = get_logger("suggestion_service")

MAX_QUICK_REPLIES = 5
MAX_TITLE_LENGTH = 20

# Knowledge sections that describe the assistant itself, not the shop.
RESERVED_KNOWLEDGE_TITLES = {"Business Name", "AI Persona & Name"}

PAYLOAD_SHOW_CATEGORIES = "SHOW_PRODUCT_CATEGORIES"
PAYLOAD_CREATE_ORDER = "CREATE_NEW_ORDER_FLOW"
PAYLOAD_CREATE_BOOKING = "CREATE_NEW_BOOKING_FLOW"
PAYLOAD_MANAGE_ORDER = "MANAGE_ORDER_FLOW"
PAYLOAD_MANAGE_BOOKING = "MANAGE_BOOKING_FLOW"
PAYLOAD_PAYMENT_METHODS = "SHOW_ALL_PAYMENT_METHODS"
PAYLOAD_HANDOVER = "HANDOVER_TO_HUMAN"
PAYLOAD_FINAL_QUESTION = "I have a question"
PAYLOAD_NEW_ARRIVALS = "Show me new arrivals"


def _shorten(title: str) -> str:
    if len(title) > MAX_TITLE_LENGTH:
        return title[:17] + "..."
    return title


class _SuggestionCollector:
    """Accumulates unique quick replies up to the limit."""

    def __init__(self, blocked_payloads: set[str]):
        self.blocked_payloads = blocked_payloads
        self.added_payloads: set[str] = set()
        self.suggestions: list[QuickReplyAction] = []

    @property
    def full(self) -> bool:
        return len(self.suggestions) >= MAX_QUICK_REPLIES

    def add(self, action: Optional[QuickReplyAction]) -> None:
        if action is None or self.full:
            return
        if action.payload in self.added_payloads or action.payload in self.blocked_payloads:
            return
        self.suggestions.append(action.model_copy(update={"title": _shorten(action.title)}))
        self.added_payloads.add(action.payload)

    def extend(self, actions: Iterable[Optional[QuickReplyAction]]) -> None:
        for action in actions:
            self.add(action)


class _CandidateFactory:
    """Builds each kind of candidate suggestion for one shop."""

    def __init__(self, shop: ShopConfig):
        self.shop = shop
        self.language = shop.assistant_config.language

    def _label(self, key: str) -> str:
        return translate(key, self.language)

    def categories(self) -> Optional[QuickReplyAction]:
        if not self.shop.categories():
            return None
        override = self.shop.assistant_config.quick_reply_override("showCategories")
        if override and not override.enabled:
            return None
        title = (override.title if override else "") or self._label("quick_reply_browse_by_category")
        return QuickReplyAction(title=title, payload=PAYLOAD_SHOW_CATEGORIES)

    def order_or_book(self) -> Optional[QuickReplyAction]:
        if self.shop.order_flow.enabled:
            title = self.shop.order_flow.strings.create_new_order or self._label("quick_reply_order_now")
            return QuickReplyAction(title=title, payload=PAYLOAD_CREATE_ORDER)
        if self.shop.booking_flow.enabled:
            title = self.shop.booking_flow.strings.create_new_booking_button_text or self._label(
                "quick_reply_book_now"
            )
            return QuickReplyAction(title=title, payload=PAYLOAD_CREATE_BOOKING)
        return None

    def manage(self) -> Optional[QuickReplyAction]:
        if self.shop.order_flow.enabled:
            title = self.shop.order_flow.strings.manage_order_button_text or self._label(
                "quick_reply_manage_my_order"
            )
            return QuickReplyAction(title=title, payload=PAYLOAD_MANAGE_ORDER)
        if self.shop.booking_flow.enabled:
            title = self.shop.booking_flow.strings.manage_booking_button_text or self._label(
                "quick_reply_manage_my_booking"
            )
            return QuickReplyAction(title=title, payload=PAYLOAD_MANAGE_BOOKING)
        return None

    def payment_methods(self) -> Optional[QuickReplyAction]:
        if not self.shop.payment_methods:
            return None
        title = self.shop.payment_button_text or self._label("quick_reply_payment_methods")
        return QuickReplyAction(title=title, payload=PAYLOAD_PAYMENT_METHODS)

    def knowledge_sections(self) -> list[QuickReplyAction]:
        return [
            QuickReplyAction(title=section.title, payload=f"Tell me about {section.title}")
            for section in self.shop.knowledge_base
            if section.include_in_quick_replies and section.title not in RESERVED_KNOWLEDGE_TITLES
        ]

    def talk_to_human(self) -> Optional[QuickReplyAction]:
        override = self.shop.assistant_config.quick_reply_override("handoverToHuman")
        if override and not override.enabled:
            return None
        title = (override.title if override else "") or self._label("quick_reply_talk_to_human")
        return QuickReplyAction(title=title, payload=PAYLOAD_HANDOVER)

    def continue_shopping(self) -> QuickReplyAction:
        return QuickReplyAction(title=self._label("quick_reply_continue_shopping"), payload=PAYLOAD_SHOW_CATEGORIES)

    def final_question(self) -> QuickReplyAction:
        return QuickReplyAction(title=self._label("quick_reply_final_question"), payload=PAYLOAD_FINAL_QUESTION)

    def new_arrivals(self) -> Optional[QuickReplyAction]:
        if not self.shop.items:
            return None
        return QuickReplyAction(title=self._label("quick_reply_new_arrivals"), payload=PAYLOAD_NEW_ARRIVALS)


def _intent_candidates(intent: Intent, factory: _CandidateFactory) -> list[Optional[QuickReplyAction]]:
    plans: dict[Intent, Callable[[], list[Optional[QuickReplyAction]]]] = {
        Intent.AWARENESS: lambda: [factory.categories(), factory.order_or_book(), *factory.knowledge_sections()],
        Intent.CONSIDERATION: lambda: [
            factory.order_or_book(),
            factory.payment_methods(),
            factory.talk_to_human(),
            factory.continue_shopping(),
        ],
        Intent.PURCHASE: lambda: [factory.order_or_book(), factory.payment_methods(), factory.final_question()],
        Intent.POST_PURCHASE: lambda: [factory.manage(), factory.new_arrivals(), factory.talk_to_human()],
        Intent.FALLBACK: lambda: [
            factory.categories(),
            factory.order_or_book(),
            factory.manage(),
            *factory.knowledge_sections(),
        ],
    }
    return plans.get(intent, plans[Intent.FALLBACK])()


def _default_candidates(factory: _CandidateFactory) -> list[Optional[QuickReplyAction]]:
    return [
        factory.categories(),
        factory.order_or_book(),
        factory.manage(),
        factory.payment_methods(),
        *factory.knowledge_sections(),
        factory.talk_to_human(),
    ]


def rank_quick_replies(
    shop: ShopConfig,
    intent: Optional[Intent],
    last_customer_text: str = "",
    message: Optional[Message] = None,
) -> list[QuickReplyAction]:
    """Suggest up to five next steps for the customer.

    Candidates come from the intent's priority list first, then from the default
    list. Payloads already shown as persistent buttons on ``message`` are skipped.
    """
    if intent is None:
        intent = classify_intent(last_customer_text, shop.item_names())

    collector = _SuggestionCollector(message.persistent_payloads() if message else set())
    factory = _CandidateFactory(shop)

    collector.extend(_intent_candidates(intent, factory))
    if not collector.full:
        collector.extend(_default_candidates(factory))

    logger.debug(
        "Ranked quick replies",
        extra={
            "context": {
                "shop_id": shop.id,
                "intent": intent.value,
                "payloads": [action.payload for action in collector.suggestions],
            }
        },
    )
    return collector.suggestions

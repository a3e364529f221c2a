import re
from enum import Enum
from typing import Iterable


class Intent(str, Enum):
    AWARENESS = "awareness"  # Greeting, first look at the shop
    CONSIDERATION = "consideration"  # Price, delivery, payment questions
    PURCHASE = "purchase"  # Ready to buy
    POST_PURCHASE = "post_purchase"  # Tracking, changing or cancelling an order
    FALLBACK = "fallback"  # Anything else


AWARENESS_KEYWORDS = (
    "hello",
    "hi",
    "what is this?",
    "info",
    "can you help",
    "shop",
    "မင်္ဂလာပါ",
    "ဆိုင်",
    "menu",
)

CONSIDERATION_KEYWORDS = (
    "delivery",
    "shipping",
    "payment",
    "return policy",
    "how much",
    "price",
    "ပို့ခ",
    "ဘယ်လောက်လဲ",
    "ငွေချေ",
    "available?",
)

PURCHASE_KEYWORDS = (
    "i want to buy",
    "order now",
    "checkout",
    "add to cart",
    "how to pay?",
    "ဝယ်မယ်",
    "အော်ဒါတင်မယ်",
)

POST_PURCHASE_KEYWORDS = (
    "my order",
    "order status",
    "track",
    "cancel",
    "change address",
    "အော်ဒါအခြေအနေ",
    "booking",
    "manage",
)

# Matched against the raw text: order ids are upper case.
ORDER_ID_PATTERN = re.compile(r"[A-Z]{2,4}-\d{4,}")


def _mentions_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_intent(text: str, catalog_item_names: Iterable[str] = ()) -> Intent:
    """Classify where the customer is in the shopping journey.

    Pure keyword matching, no model call. Precedence is
    AWARENESS > PURCHASE > POST_PURCHASE > CONSIDERATION > FALLBACK.
    Keywords match as substrings, so "hi" also fires inside "shipping".
    """
    if not text or not text.strip():
        return Intent.AWARENESS

    lowered = text.lower()

    if _mentions_any(lowered, AWARENESS_KEYWORDS):
        return Intent.AWARENESS
    if _mentions_any(lowered, PURCHASE_KEYWORDS):
        return Intent.PURCHASE
    if _mentions_any(lowered, POST_PURCHASE_KEYWORDS) or ORDER_ID_PATTERN.search(text):
        return Intent.POST_PURCHASE

    item_names = [name.lower() for name in catalog_item_names if name]
    if _mentions_any(lowered, CONSIDERATION_KEYWORDS) or _mentions_any(lowered, item_names):
        return Intent.CONSIDERATION

    return Intent.FALLBACK

from dataclasses import dataclass
from typing import Optional

from app.schemas.message import (
    Attachment,
    CarouselButton,
    CarouselCard,
    Message,
    PersistentMenuItem,
    PersistentMenuItemType,
    QuickReplyAction,
)
from app.schemas.shop import CatalogItem, Form, ShopConfig
from app.services.locale_service import translate
from app.services.recap_service import format_amount
from app.services.state_machine import ConversationState

PRODUCT_INFO_PREFIX = "PRODUCT_INFO_ID_"
PAYMENT_INFO_PREFIX = "PAYMENT_INFO_ID_"
SHOW_CATEGORY_PREFIX = "show me "
MAX_CAROUSEL_CARDS = 10


@dataclass
class CommandResult:
    """What a deterministic command wants the turn to produce."""

    message: Optional[Message]
    open_form: Optional[Form] = None
    next_state: Optional[ConversationState] = None
    disable_ai: bool = False


def _handover(shop: ShopConfig, language: str) -> CommandResult:
    override = shop.assistant_config.quick_reply_override("handoverToHuman")
    text = (override.reply if override else "") or translate("handover_to_human", language)
    return CommandResult(message=Message(text=text), disable_ai=True)


def _product_info(shop: ShopConfig, item_id: str, language: str) -> CommandResult:
    item = shop.find_item(item_id)
    if item is None:
        return CommandResult(message=Message(text=translate("item_not_found", language)))
    return CommandResult(
        message=Message(
            text=item.description or translate("item_no_description", language),
            persistent_buttons=list(item.buttons) or None,
        )
    )


def _categories(shop: ShopConfig, language: str) -> CommandResult:
    categories = shop.categories()
    if not categories:
        return CommandResult(message=Message(text=translate("quick_reply_no_categories", language)))
    override = shop.assistant_config.quick_reply_override("showCategories")
    intro = (override.reply if override else "") or translate("quick_reply_which_category", language)
    quick_replies = [QuickReplyAction(title=category, payload=f"Show me {category}") for category in categories]
    return CommandResult(message=Message(text=intro, quick_replies=quick_replies))


def _carousel_buttons(item: CatalogItem, language: str) -> list[CarouselButton]:
    if not item.buttons:
        return [CarouselButton(title=translate("more_info", language), payload=f"{PRODUCT_INFO_PREFIX}{item.id}")]
    return [
        CarouselButton(
            title=button.title,
            payload=button.payload or button.url or button.id,
            kind="web_url" if button.type == PersistentMenuItemType.WEB_URL else "postback",
        )
        for button in item.buttons
    ]


def _category_carousel(shop: ShopConfig, category: str, language: str) -> CommandResult:
    wanted = category.strip().lower()
    items = [item for item in shop.items if item.category and item.category.lower() == wanted]
    if not items:
        return CommandResult(message=Message(text=translate("category_not_found", language, category=category)))
    cards = [
        CarouselCard(
            title=item.name,
            subtitle=f"{format_amount(item.price)} {shop.currency}",
            image_url=item.image_url,
            buttons=_carousel_buttons(item, language),
        )
        for item in items[:MAX_CAROUSEL_CARDS]
    ]
    return CommandResult(
        message=Message(text=translate("category_items_intro", language, category=category), carousel=cards)
    )


def _payment_methods(shop: ShopConfig, language: str) -> CommandResult:
    enabled = [method for method in shop.payment_methods if method.enabled]
    if not enabled:
        return CommandResult(message=Message(text=translate("quick_reply_no_payment_methods", language)))
    buttons = [
        PersistentMenuItem(
            id=f"pm_{method.id}",
            type=PersistentMenuItemType.POSTBACK,
            title=method.name,
            payload=f"{PAYMENT_INFO_PREFIX}{method.id}",
        )
        for method in enabled
    ]
    intro = shop.payment_intro_message or translate("quick_reply_accept_these_payments", language)
    return CommandResult(message=Message(text=intro, persistent_buttons=buttons))


def _payment_info(shop: ShopConfig, method_id: str, language: str) -> CommandResult:
    method = shop.find_payment_method(method_id)
    if method is None:
        return CommandResult(message=Message(text=translate("payment_method_not_found", language)))
    attachment = Attachment(kind="image", url=method.qr_code_url) if method.qr_code_url else None
    text = translate("payment_method_details", language, name=method.name, instructions=method.instructions)
    return CommandResult(message=Message(text=text, attachment=attachment))


def _create_order(shop: ShopConfig, language: str) -> CommandResult:
    form = shop.find_form(shop.default_order_form_id)
    if form is None:
        return CommandResult(message=Message(text=translate("quick_reply_default_order_form_not_set", language)))
    return CommandResult(
        message=Message(
            text=translate("quick_reply_open_order_form", language),
            quick_replies=[QuickReplyAction(title=form.name, payload=form.id, kind="open_form")],
        ),
        open_form=form,
    )


def _manage_order(shop: ShopConfig) -> CommandResult:
    strings = shop.order_flow.strings
    return CommandResult(
        message=Message(
            text=strings.manage_order_triage_prompt,
            quick_replies=[
                QuickReplyAction(title=strings.check_order_status, payload="CHECK_ORDER_STATUS_FLOW"),
                QuickReplyAction(title=strings.update_existing_order, payload="UPDATE_EXISTING_ORDER_FLOW"),
                QuickReplyAction(title=strings.cancel_existing_order, payload="CANCEL_EXISTING_ORDER_FLOW"),
            ],
        )
    )


def _check_order_status(shop: ShopConfig) -> CommandResult:
    return CommandResult(
        message=Message(text=shop.order_flow.strings.ask_for_order_id),
        next_state=ConversationState.AWAITING_ORDER_ID_FOR_STATUS,
    )


def run_command(shop: ShopConfig, payload: str) -> Optional[CommandResult]:
    """Handle button payloads and fixed phrases. Returns None when ``payload`` is not a command."""
    language = shop.assistant_config.language

    if payload == "HANDOVER_TO_HUMAN":
        return _handover(shop, language)
    if payload.startswith(PRODUCT_INFO_PREFIX):
        return _product_info(shop, payload[len(PRODUCT_INFO_PREFIX) :], language)
    if payload == "SHOW_PRODUCT_CATEGORIES":
        return _categories(shop, language)
    if payload.lower().startswith(SHOW_CATEGORY_PREFIX):
        return _category_carousel(shop, payload[len(SHOW_CATEGORY_PREFIX) :], language)
    if payload == "SHOW_ALL_PAYMENT_METHODS":
        return _payment_methods(shop, language)
    if payload.startswith(PAYMENT_INFO_PREFIX):
        return _payment_info(shop, payload[len(PAYMENT_INFO_PREFIX) :], language)
    if payload == "CREATE_NEW_ORDER_FLOW":
        return _create_order(shop, language)
    if payload == "MANAGE_ORDER_FLOW":
        return _manage_order(shop)
    if payload == "CHECK_ORDER_STATUS_FLOW":
        return _check_order_status(shop)
    return None

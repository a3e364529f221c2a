from app.schemas.message import PersistentMenuItem
from app.schemas.shop import ShopConfig
from app.services.locale_service import translate


def _retitled(item: PersistentMenuItem, shop: ShopConfig) -> PersistentMenuItem:
    language = shop.assistant_config.language
    title = None
    if item.payload == "MANAGE_ORDER_FLOW":
        title = shop.order_flow.strings.manage_order_button_text or translate("menu_manage_order", language)
    elif item.payload == "SHOW_ALL_PAYMENT_METHODS":
        title = shop.payment_button_text or translate("menu_payment_methods", language)
    elif item.payload == "MANAGE_BOOKING_FLOW":
        title = shop.booking_flow.strings.manage_booking_button_text or item.title
    elif item.payload == "CREATE_NEW_BOOKING_FLOW":
        title = shop.booking_flow.strings.create_new_booking_button_text or translate("menu_book_now", language)
    if title is None:
        return item
    return item.model_copy(update={"title": title})


def _is_available(item: PersistentMenuItem, shop: ShopConfig) -> bool:
    if item.payload == "MANAGE_ORDER_FLOW":
        return shop.order_flow.enabled
    if item.payload == "MANAGE_BOOKING_FLOW":
        return shop.booking_flow.enabled
    return True


def resolve_persistent_menu(shop: ShopConfig) -> list[PersistentMenuItem]:
    """Menu items as the customer sees them: gated by flow toggles, relabelled, unique by title."""
    resolved: dict[str, PersistentMenuItem] = {}
    for item in shop.persistent_menu:
        if not _is_available(item, shop):
            continue
        item = _retitled(item, shop)
        resolved.setdefault(item.title, item)
    return list(resolved.values())

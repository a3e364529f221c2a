from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from app.schemas.message import Attachment, PersistentMenuItem
from app.schemas.order import OrderStatus


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CustomQuickReply(_Snapshot):
    key: str  # showCategories, handoverToHuman
    title: str = ""
    reply: str = ""
    enabled: bool = True


class AssistantConfig(_Snapshot):
    system_prompt: str = ""
    language: str = "en"
    tone: Literal["male", "female", "neutral"] = "neutral"
    response_delay: float = 0.0
    custom_quick_replies: list[CustomQuickReply] = []

    def quick_reply_override(self, key: str) -> Optional[CustomQuickReply]:
        for override in self.custom_quick_replies:
            if override.key == key:
                return override
        return None


class KnowledgeSection(_Snapshot):
    id: str
    title: str
    content: str = ""
    include_in_quick_replies: bool = False


class CatalogItem(_Snapshot):
    id: str
    name: str
    item_type: Literal["product", "service"] = "product"
    description: str = ""
    category: Optional[str] = None
    retail_price: float = 0.0
    promo_price: Optional[float] = None
    image_url: Optional[str] = None
    buttons: list[PersistentMenuItem] = []

    @property
    def price(self) -> float:
        return self.promo_price or self.retail_price


class FormField(_Snapshot):
    id: str
    label: str
    type: str = "Short Text"
    required: bool = False


class Form(_Snapshot):
    id: str
    name: str
    fields: list[FormField] = []


class PaymentMethod(_Snapshot):
    id: str
    name: str
    instructions: str = ""
    qr_code_url: Optional[str] = None
    requires_proof: bool = False
    enabled: bool = True


class KeywordRuleScope(_Snapshot):
    chat: bool = True
    comments: bool = False


class KeywordRule(_Snapshot):
    id: str
    keywords: str
    reply: str = ""
    match_type: Optional[Literal["exact", "contains"]] = None
    apply_to: KeywordRuleScope = KeywordRuleScope()
    attachment: Optional[Attachment] = None
    buttons: list[PersistentMenuItem] = []
    enabled: bool = True


class OrderFlowStrings(_Snapshot):
    manage_order_button_text: str = "Manage My Order"
    manage_order_triage_prompt: str = "What would you like to do with your order?"
    create_new_order: str = "Order Now"
    check_order_status: str = "Check Order Status"
    update_existing_order: str = "Update My Order"
    cancel_existing_order: str = "Cancel My Order"
    ask_for_order_id: str = "Please send your order ID or the phone number used for the order."
    order_not_found: str = "Sorry, I couldn't find an order with that ID or phone number."
    order_status_summary: str = (
        "Order [ORDER_ID]\n"
        "Status: [STATUS]\n"
        "Name: [CUSTOMER_NAME]\n"
        "Phone: [PHONE_NUMBER]\n"
        "Address: [SHIPPING_ADDRESS]\n"
        "Items:\n[PRODUCT_LIST]\n"
        "Total: [TOTAL_AMOUNT]"
    )


class BookingFlowStrings(_Snapshot):
    manage_booking_button_text: str = "Manage My Booking"
    manage_booking_triage_prompt: str = "What would you like to do with your booking?"
    create_new_booking_button_text: str = "Book Now"
    check_booking_status_button_text: str = "Check Booking Status"
    ask_for_booking_id: str = "Please send your booking ID or the phone number used for the booking."
    booking_not_found: str = "Sorry, I couldn't find a booking with that ID or phone number."
    booking_status_summary: str = (
        "Booking [BOOKING_ID]\n"
        "Status: [STATUS]\n"
        "Service: [SERVICE_NAME]\n"
        "Date: [DATE] at [TIME]\n"
        "Name: [CUSTOMER_NAME]\n"
        "Phone: [PHONE_NUMBER]"
    )


class OrderFlowConfig(_Snapshot):
    enabled: bool = False
    strings: OrderFlowStrings = OrderFlowStrings()


class BookingFlowConfig(_Snapshot):
    enabled: bool = False
    strings: BookingFlowStrings = BookingFlowStrings()


class PaymentIntelligenceConfig(_Snapshot):
    enabled: bool = False
    time_window_minutes: int = 60
    status_on_proof: OrderStatus = OrderStatus.CONFIRMED
    confirmation_message: Optional[str] = None


class ShopConfig(_Snapshot):
    """Read-only configuration snapshot a turn is evaluated against."""

    id: str
    name: str
    currency: str = "USD"
    order_id_prefix: Optional[str] = None
    assistant_config: AssistantConfig = AssistantConfig()
    knowledge_base: list[KnowledgeSection] = []
    items: list[CatalogItem] = []
    forms: list[Form] = []
    keyword_rules: list[KeywordRule] = []
    persistent_menu: list[PersistentMenuItem] = []
    payment_methods: list[PaymentMethod] = []
    payment_intro_message: Optional[str] = None
    payment_button_text: Optional[str] = None
    order_flow: OrderFlowConfig = OrderFlowConfig()
    booking_flow: BookingFlowConfig = BookingFlowConfig()
    default_order_form_id: Optional[str] = None
    payment_intelligence: PaymentIntelligenceConfig = PaymentIntelligenceConfig()

    def categories(self) -> list[str]:
        seen: list[str] = []
        for item in self.items:
            if item.category and item.category not in seen:
                seen.append(item.category)
        return seen

    def item_names(self) -> list[str]:
        return [item.name for item in self.items]

    def find_item(self, item_id: str) -> Optional[CatalogItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def find_payment_method(self, method_id: str) -> Optional[PaymentMethod]:
        return next((method for method in self.payment_methods if method.id == method_id), None)

    def find_form(self, form_id: Optional[str]) -> Optional[Form]:
        if not form_id:
            return None
        return next((form for form in self.forms if form.id == form_id), None)

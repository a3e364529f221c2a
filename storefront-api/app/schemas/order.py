from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RETURN = "Return"


class OrderedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str = ""
    product_name: str
    quantity: int = 1
    unit_price: float = 0.0


class OrderRecord(BaseModel):
    """Form submission produced by an order or a booking."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    shop_id: str
    order_id: Optional[str] = None
    form_id: str = ""
    form_name: str
    status: OrderStatus = OrderStatus.PENDING
    ordered_products: list[OrderedItem] = []
    fields: dict[str, str] = {}
    payment_method: Optional[str] = None
    payment_screenshot_url: Optional[str] = None
    conversation_id: Optional[str] = None
    submitted_at: Optional[datetime] = None


class OrderLine(BaseModel):
    product_name: str = Field(alias="productName")
    quantity: int = Field(ge=1)

    model_config = ConfigDict(populate_by_name=True)


class CreateOrderArgs(BaseModel):
    """Arguments of the ``create_conversational_order`` tool call."""

    customer_name: str = Field(alias="customerName", min_length=1)
    phone_number: str = Field(alias="phoneNumber", min_length=1)
    shipping_address: str = Field(alias="shippingAddress", min_length=1)
    products: list[OrderLine] = Field(min_length=1)
    payment_method: str = Field(alias="paymentMethod", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class CreateBookingArgs(BaseModel):
    """Arguments of the ``create_booking`` tool call."""

    customer_name: str = Field(alias="customerName", min_length=1)
    phone_number: str = Field(alias="phoneNumber", min_length=1)
    service_name: str = Field(alias="serviceName", min_length=1)
    appointment_date: str = Field(alias="appointmentDate", min_length=1)
    appointment_time: str = Field(alias="appointmentTime", min_length=1)

    model_config = ConfigDict(populate_by_name=True)

from typing import Mapping

from app.schemas.order import OrderRecord

MISSING = "N/A"

ORDER_NAME_KEYS = ("Full Name", "Name", "Customer Name")
BOOKING_NAME_KEYS = ("Customer Name", "Name")
PHONE_KEYS = ("Phone Number", "Phone")
ADDRESS_KEYS = ("Full Shipping Address", "Address", "Shipping Address")
DATE_KEYS = ("Appointment Date", "Date")
TIME_KEYS = ("Appointment Time", "Time")


def is_booking(record: OrderRecord) -> bool:
    return "booking" in record.form_name.lower()


def find_field(fields: Mapping[str, str], *aliases: str) -> str:
    """Value of the first alias present in ``fields``, compared case-insensitively."""
    lowered = {key.lower(): value for key, value in fields.items()}
    for alias in aliases:
        if alias.lower() in lowered:
            return lowered[alias.lower()]
    return MISSING


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def _substitute(template: str, values: Mapping[str, str]) -> str:
    for token, value in values.items():
        template = template.replace(f"[{token}]", value)
    return template


def format_recap(record: OrderRecord, template: str) -> str:
    """Fill a status template from a stored order or booking."""
    if is_booking(record):
        service_name = record.ordered_products[0].product_name if record.ordered_products else MISSING
        return _substitute(
            template,
            {
                "BOOKING_ID": record.order_id or MISSING,
                "CUSTOMER_NAME": find_field(record.fields, *BOOKING_NAME_KEYS),
                "PHONE_NUMBER": find_field(record.fields, *PHONE_KEYS),
                "SERVICE_NAME": service_name or MISSING,
                "DATE": find_field(record.fields, *DATE_KEYS),
                "TIME": find_field(record.fields, *TIME_KEYS),
                "STATUS": record.status.value,
            },
        )

    product_list = "\n".join(f"- {item.product_name} (x{item.quantity})" for item in record.ordered_products)
    total = sum(item.unit_price * item.quantity for item in record.ordered_products)
    return _substitute(
        template,
        {
            "ORDER_ID": record.order_id or MISSING,
            "CUSTOMER_NAME": find_field(record.fields, *ORDER_NAME_KEYS),
            "PHONE_NUMBER": find_field(record.fields, *PHONE_KEYS),
            "SHIPPING_ADDRESS": find_field(record.fields, *ADDRESS_KEYS),
            "PRODUCT_LIST": product_list or "No items",
            "TOTAL_AMOUNT": format_amount(total),
            "STATUS": record.status.value,
        },
    )

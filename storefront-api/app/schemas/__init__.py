from app.schemas.message import Attachment, Message, MessageSender, PersistentMenuItem, QuickReplyAction
from app.schemas.order import OrderRecord, OrderStatus
from app.schemas.shop import ShopConfig
from app.schemas.turn import TurnRequest, TurnResponse

__all__ = [
    "Attachment",
    "Message",
    "MessageSender",
    "PersistentMenuItem",
    "QuickReplyAction",
    "OrderRecord",
    "OrderStatus",
    "ShopConfig",
    "TurnRequest",
    "TurnResponse",
]

from app.models.conversation import Conversation
from app.models.form_submission import FormSubmission
from app.models.message import Message
from app.models.shop import Shop

__all__ = [
    "Shop",
    "Conversation",
    "Message",
    "FormSubmission",
]

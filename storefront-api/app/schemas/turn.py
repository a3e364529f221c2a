from typing import Literal, Optional

from pydantic import BaseModel

from app.schemas.message import Message, QuickReplyAction


class TurnRequest(BaseModel):
    shop_id: str
    payload: str
    display_text: Optional[str] = None


class QuickReplyRequest(BaseModel):
    shop_id: str
    reply: QuickReplyAction


class AttachmentRequest(BaseModel):
    shop_id: str
    url: str
    kind: Literal["image", "video", "gif"] = "image"


class OpenConversationRequest(BaseModel):
    shop_id: str


class AiActiveRequest(BaseModel):
    is_ai_active: bool


class TurnResponse(BaseModel):
    success: bool
    conversation_id: str
    state: str
    is_ai_active: bool
    handled_by: str
    message: Optional[Message] = None
    open_form_id: Optional[str] = None
    record_id: Optional[str] = None


class TranscriptResponse(BaseModel):
    conversation_id: str
    state: str
    is_ai_active: bool
    is_loading: bool
    messages: list[Message]

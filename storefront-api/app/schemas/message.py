from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["image", "video", "gif"] = "image"
    url: str
    name: Optional[str] = None


class QuickReplyAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    payload: str
    kind: Literal["postback", "open_form"] = "postback"


class PersistentMenuItemType(str, Enum):
    POSTBACK = "postback"
    WEB_URL = "web_url"
    OPEN_FORM = "open_form"


class PersistentMenuItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: PersistentMenuItemType = PersistentMenuItemType.POSTBACK
    title: str
    payload: Optional[str] = None
    url: Optional[str] = None


class CarouselButton(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    payload: str
    kind: Literal["postback", "web_url"] = "postback"


class CarouselCard(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: Optional[str] = None
    image_url: Optional[str] = None
    buttons: list[CarouselButton] = []


class Message(BaseModel):
    """One chat bubble.

    ``quick_replies`` left as ``None`` means the producer did not choose any and the
    orchestrator ranks suggestions for it; an explicit list, even an empty one, is kept.
    """

    model_config = ConfigDict(frozen=True)

    sender: MessageSender = MessageSender.ASSISTANT
    text: Optional[str] = None
    attachment: Optional[Attachment] = None
    quick_replies: Optional[list[QuickReplyAction]] = None
    carousel: Optional[list[CarouselCard]] = None
    persistent_buttons: Optional[list[PersistentMenuItem]] = None

    @model_validator(mode="after")
    def _carousel_is_primary_payload(self) -> "Message":
        if self.carousel:
            if self.quick_replies:
                raise ValueError("carousel messages cannot carry quick replies")
            if self.attachment is not None:
                raise ValueError("carousel messages cannot carry an attachment")
        return self

    def persistent_payloads(self) -> set[str]:
        return {button.payload for button in self.persistent_buttons or [] if button.payload}

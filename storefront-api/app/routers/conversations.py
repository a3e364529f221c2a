import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.message import Attachment, PersistentMenuItem
from app.schemas.shop import ShopConfig
from app.schemas.turn import (
    AiActiveRequest,
    AttachmentRequest,
    OpenConversationRequest,
    QuickReplyRequest,
    TranscriptResponse,
    TurnRequest,
    TurnResponse,
)
from app.services.ai_service import AssistantService
from app.services.conversation_service import ConversationNotFoundError, ConversationStore
from app.services.llm import LLMProvider
from app.services.menu_service import resolve_persistent_menu
from app.services.orchestrator import TurnOrchestrator, TurnOutcome
from app.services.order_service import RecordStore
from app.services.scheduler import ReplyScheduler
from app.services.shop_service import ShopSnapshotCache

router = APIRouter()


def get_reply_scheduler(request: Request) -> ReplyScheduler:
    return request.app.state.reply_scheduler


def get_llm_provider(request: Request) -> LLMProvider:
    return request.app.state.llm_provider


def get_shop_cache(request: Request) -> ShopSnapshotCache:
    return request.app.state.shop_cache


def get_orchestrator(
    db: Session = Depends(get_db),
    scheduler: ReplyScheduler = Depends(get_reply_scheduler),
    provider: LLMProvider = Depends(get_llm_provider),
) -> TurnOrchestrator:
    records = RecordStore(db)
    return TurnOrchestrator(
        conversations=ConversationStore(db),
        records=records,
        assistant=AssistantService(provider, records),
        scheduler=scheduler,
    )


async def _require_shop(cache: ShopSnapshotCache, shop_id: str) -> ShopConfig:
    shop = await asyncio.to_thread(cache.get, shop_id)
    if shop is None:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop


def _to_response(outcome: TurnOutcome) -> TurnResponse:
    return TurnResponse(
        success=True,
        conversation_id=outcome.conversation_id,
        state=outcome.state.value,
        is_ai_active=outcome.is_ai_active,
        handled_by=outcome.handled_by,
        message=outcome.message,
        open_form_id=outcome.open_form.id if outcome.open_form else None,
        record_id=outcome.record_id,
    )


@router.post("/conversations/{conversation_id}/turns", response_model=TurnResponse)
async def post_turn(
    conversation_id: str,
    request: TurnRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
    shops: ShopSnapshotCache = Depends(get_shop_cache),
):
    """Customer typed a message or pressed a button."""
    shop = await _require_shop(shops, request.shop_id)
    try:
        outcome = await orchestrator.handle_turn(shop, conversation_id, request.payload, request.display_text)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return _to_response(outcome)


@router.post("/conversations/{conversation_id}/quick-replies", response_model=TurnResponse)
async def post_quick_reply(
    conversation_id: str,
    request: QuickReplyRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
    shops: ShopSnapshotCache = Depends(get_shop_cache),
):
    shop = await _require_shop(shops, request.shop_id)
    try:
        outcome = await orchestrator.handle_quick_reply(shop, conversation_id, request.reply)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return _to_response(outcome)


@router.post("/conversations/{conversation_id}/attachments", response_model=TurnResponse)
async def post_attachment(
    conversation_id: str,
    request: AttachmentRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
    shops: ShopSnapshotCache = Depends(get_shop_cache),
):
    shop = await _require_shop(shops, request.shop_id)
    attachment = Attachment(kind=request.kind, url=request.url)
    try:
        outcome = await orchestrator.handle_attachment(shop, conversation_id, attachment)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return _to_response(outcome)


@router.post("/conversations/{conversation_id}/open", response_model=TurnResponse)
async def open_conversation(
    conversation_id: str,
    request: OpenConversationRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
    shops: ShopSnapshotCache = Depends(get_shop_cache),
):
    """Widget opened; greets the customer when the conversation is new."""
    shop = await _require_shop(shops, request.shop_id)
    try:
        outcome = await orchestrator.open_conversation(shop, conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return _to_response(outcome)


@router.get("/conversations/{conversation_id}/messages", response_model=TranscriptResponse)
def get_messages(conversation_id: str, db: Session = Depends(get_db)):
    conversations = ConversationStore(db)
    snapshot = conversations.get(conversation_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return TranscriptResponse(
        conversation_id=snapshot.id,
        state=snapshot.state.value,
        is_ai_active=snapshot.is_ai_active,
        is_loading=snapshot.is_loading,
        messages=conversations.transcript(conversation_id),
    )


@router.post("/conversations/{conversation_id}/ai-active", response_model=TranscriptResponse)
async def set_ai_active(
    conversation_id: str,
    request: AiActiveRequest,
    db: Session = Depends(get_db),
    scheduler: ReplyScheduler = Depends(get_reply_scheduler),
):
    """Human agent takes the conversation over or hands it back to the assistant.

    Waits for any in-flight turn of the conversation to finish first.
    """
    conversations = ConversationStore(db)
    async with scheduler.turn(conversation_id):
        try:
            snapshot = await asyncio.to_thread(conversations.set_ai_active, conversation_id, request.is_ai_active)
        except ConversationNotFoundError:
            raise HTTPException(status_code=404, detail="Conversation not found")
        messages = await asyncio.to_thread(conversations.transcript, conversation_id)
    return TranscriptResponse(
        conversation_id=snapshot.id,
        state=snapshot.state.value,
        is_ai_active=snapshot.is_ai_active,
        is_loading=snapshot.is_loading,
        messages=messages,
    )


@router.get("/shops/{shop_id}/persistent-menu", response_model=list[PersistentMenuItem])
async def get_persistent_menu(shop_id: str, shops: ShopSnapshotCache = Depends(get_shop_cache)):
    return resolve_persistent_menu(await _require_shop(shops, shop_id))

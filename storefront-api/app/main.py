import asyncio

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import Base, engine, get_db
from app.logging_config import get_logger, setup_logging
from app.models import Conversation, FormSubmission, Message, Shop
from app.routers import conversations
from app.services.ai_service import get_llm_provider
from app.services.scheduler import ReplyScheduler
from app.services.shop_service import ShopSnapshotCache

setup_logging(settings.log_level)

app = FastAPI(
    title="Storefront Assistant API",
    description="Turn orchestration for the storefront chat widget",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(conversations.router)

app.state.shop_cache = ShopSnapshotCache()
app.state.reply_scheduler = ReplyScheduler()
app.state.llm_provider = get_llm_provider()

cache_logger = get_logger("shop_cache_worker")
_shop_cache_task: asyncio.Task | None = None


async def _shop_cache_loop() -> None:
    while True:
        try:
            await asyncio.sleep(max(settings.shop_cache_refresh_seconds, 1.0))
            refreshed = await asyncio.to_thread(app.state.shop_cache.refresh)
            cache_logger.debug("Shop cache refreshed", extra={"context": {"shops": refreshed}})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            cache_logger.error(
                "Shop cache refresh failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def startup() -> None:
    global _shop_cache_task
    Base.metadata.create_all(bind=engine)
    if not settings.shop_cache_worker_enabled:
        return
    if _shop_cache_task is None or _shop_cache_task.done():
        _shop_cache_task = asyncio.create_task(_shop_cache_loop())
        cache_logger.info("Shop cache worker started")


@app.on_event("shutdown")
async def shutdown() -> None:
    global _shop_cache_task
    await app.state.reply_scheduler.drain()
    if _shop_cache_task is None:
        return
    _shop_cache_task.cancel()
    try:
        await _shop_cache_task
    except asyncio.CancelledError:
        pass
    _shop_cache_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "shops": db.query(Shop).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "form_submissions": db.query(FormSubmission).count(),
    }

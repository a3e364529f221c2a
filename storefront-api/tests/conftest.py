from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Conversation, FormSubmission, Message, Shop  # noqa: F401
from app.schemas.message import PersistentMenuItem
from app.schemas.shop import (
    AssistantConfig,
    BookingFlowConfig,
    CatalogItem,
    Form,
    FormField,
    KnowledgeSection,
    OrderFlowConfig,
    PaymentIntelligenceConfig,
    PaymentMethod,
    ShopConfig,
)
from app.services.llm import LLMResponse
from app.services.scheduler import ReplyScheduler


@pytest.fixture
def session_factory():
    """Sessions bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")


def build_shop(**overrides) -> ShopConfig:
    """A small shop with two categories, an order form and two payment methods."""
    data = dict(
        id="shop-1",
        name="The Coffee Club",
        currency="MMK",
        assistant_config=AssistantConfig(system_prompt="You are Mya, the shop assistant."),
        knowledge_base=[
            KnowledgeSection(id="k1", title="Business Name", content="The Coffee Club", include_in_quick_replies=True),
            KnowledgeSection(id="k2", title="Delivery", content="We deliver in Yangon.", include_in_quick_replies=True),
        ],
        items=[
            CatalogItem(id="p1", name="Arabica Beans", category="Coffee", retail_price=15000),
            CatalogItem(id="p2", name="Green Tea", category="Tea", retail_price=8000, promo_price=6500),
            CatalogItem(id="p3", name="French Press", category="Coffee", retail_price=45000),
        ],
        forms=[Form(id="form-1", name="Order Form", fields=[FormField(id="f1", label="Full Name")])],
        payment_methods=[
            PaymentMethod(id="kpay", name="KBZPay", instructions="Send to 09123456", requires_proof=True),
            PaymentMethod(id="cod", name="Cash on Delivery", instructions="Pay the rider"),
        ],
        persistent_menu=[
            PersistentMenuItem(id="m1", title="Order", payload="MANAGE_ORDER_FLOW"),
            PersistentMenuItem(id="m2", title="Pay", payload="SHOW_ALL_PAYMENT_METHODS"),
        ],
        order_flow=OrderFlowConfig(enabled=True),
        booking_flow=BookingFlowConfig(enabled=False),
        default_order_form_id="form-1",
        payment_intelligence=PaymentIntelligenceConfig(enabled=True, time_window_minutes=30),
    )
    data.update(overrides)
    return ShopConfig(**data)


@pytest.fixture
def shop():
    return build_shop()


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def scheduler():
    return ReplyScheduler(sleep=_no_sleep)


@pytest.fixture
def llm_provider():
    provider = AsyncMock()
    provider.generate.return_value = LLMResponse(content="Happy to help!", model="test-model")
    return provider


@pytest.fixture
def make_shop():
    return build_shop

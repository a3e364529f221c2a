import pytest
from fastapi.testclient import TestClient

from app.database import get_db
from app.main import app
from app.routers.conversations import get_llm_provider, get_reply_scheduler, get_shop_cache
from app.services.shop_service import ShopSnapshotCache


@pytest.fixture
def shop_cache(session_factory, shop):
    shops = ShopSnapshotCache(session_factory=session_factory)
    shops.put(shop)
    return shops


@pytest.fixture
def client(session_factory, scheduler, llm_provider, shop_cache):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_reply_scheduler] = lambda: scheduler
    app.dependency_overrides[get_llm_provider] = lambda: llm_provider
    app.dependency_overrides[get_shop_cache] = lambda: shop_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestTurnEndpoint:
    def test_text_turn(self, client):
        response = client.post("/conversations/conv-1/turns", json={"shop_id": "shop-1", "payload": "hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["handled_by"] == "assistant"
        assert data["state"] == "idle"
        assert data["message"]["text"] == "Happy to help!"
        assert len(data["message"]["quick_replies"]) <= 5

    def test_unknown_shop(self, client):
        response = client.post("/conversations/conv-1/turns", json={"shop_id": "missing", "payload": "hi"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Shop not found"

    def test_conversation_bound_to_other_shop(self, client, shop_cache, make_shop):
        client.post("/conversations/conv-1/turns", json={"shop_id": "shop-1", "payload": "hello"})
        shop_cache.put(make_shop(id="shop-2"))

        response = client.post("/conversations/conv-1/turns", json={"shop_id": "shop-2", "payload": "hello"})
        assert response.status_code == 404

    def test_missing_payload_is_rejected(self, client):
        response = client.post("/conversations/conv-1/turns", json={"shop_id": "shop-1"})
        assert response.status_code == 422


class TestQuickReplyEndpoint:
    def test_open_form(self, client):
        response = client.post(
            "/conversations/conv-1/quick-replies",
            json={"shop_id": "shop-1", "reply": {"title": "Order Form", "payload": "form-1", "kind": "open_form"}},
        )

        data = response.json()
        assert data["handled_by"] == "open_form"
        assert data["open_form_id"] == "form-1"
        assert data["message"] is None

    def test_postback(self, client):
        response = client.post(
            "/conversations/conv-1/quick-replies",
            json={"shop_id": "shop-1", "reply": {"title": "Manage", "payload": "MANAGE_ORDER_FLOW"}},
        )

        assert response.json()["message"]["text"] == "What would you like to do with your order?"


class TestAttachmentEndpoint:
    def test_image_without_window(self, client):
        response = client.post(
            "/conversations/conv-1/attachments", json={"shop_id": "shop-1", "url": "https://img/1.png"}
        )

        assert response.status_code == 200
        assert response.json()["handled_by"] == "image_fallback"


class TestTranscriptEndpoints:
    def test_open_then_read_transcript(self, client):
        opened = client.post("/conversations/conv-1/open", json={"shop_id": "shop-1"})
        assert opened.json()["handled_by"] == "welcome"

        transcript = client.get("/conversations/conv-1/messages")
        data = transcript.json()
        assert data["is_loading"] is False
        assert [message["text"] for message in data["messages"]] == ["Hi! How can I help you today?"]

    def test_transcript_not_found(self, client):
        assert client.get("/conversations/nope/messages").status_code == 404

    def test_agent_takes_over(self, client, llm_provider):
        client.post("/conversations/conv-1/open", json={"shop_id": "shop-1"})

        toggled = client.post("/conversations/conv-1/ai-active", json={"is_ai_active": False})
        assert toggled.json()["is_ai_active"] is False

        turn = client.post("/conversations/conv-1/turns", json={"shop_id": "shop-1", "payload": "anyone?"})
        assert turn.json()["handled_by"] == "human_agent"
        assert turn.json()["message"] is None
        llm_provider.generate.assert_not_called()

    def test_toggle_unknown_conversation(self, client):
        response = client.post("/conversations/nope/ai-active", json={"is_ai_active": True})
        assert response.status_code == 404


class TestPersistentMenuEndpoint:
    def test_menu_for_shop(self, client):
        response = client.get("/shops/shop-1/persistent-menu")

        assert response.status_code == 200
        assert [item["payload"] for item in response.json()] == ["MANAGE_ORDER_FLOW", "SHOW_ALL_PAYMENT_METHODS"]

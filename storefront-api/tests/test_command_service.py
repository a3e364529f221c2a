from app.schemas.message import PersistentMenuItem, PersistentMenuItemType
from app.schemas.shop import CatalogItem
from app.services.command_service import MAX_CAROUSEL_CARDS, run_command
from app.services.state_machine import ConversationState


class TestRunCommand:
    def test_free_text_is_not_a_command(self, shop):
        assert run_command(shop, "do you deliver to Mandalay?") is None

    def test_unwired_flows_fall_through(self, shop):
        assert run_command(shop, "UPDATE_EXISTING_ORDER_FLOW") is None
        assert run_command(shop, "MANAGE_BOOKING_FLOW") is None

    def test_handover_disables_ai(self, shop):
        result = run_command(shop, "HANDOVER_TO_HUMAN")
        assert result.disable_ai is True
        assert result.message.quick_replies is None

    def test_status_check_enters_flow(self, shop):
        result = run_command(shop, "CHECK_ORDER_STATUS_FLOW")
        assert result.next_state == ConversationState.AWAITING_ORDER_ID_FOR_STATUS

    def test_unknown_product(self, shop):
        result = run_command(shop, "PRODUCT_INFO_ID_nope")
        assert result.message.text == "Sorry, I couldn't find details for that item."

    def test_product_without_description(self, shop):
        result = run_command(shop, "PRODUCT_INFO_ID_p1")
        assert result.message.text == "No detailed description."
        assert result.message.persistent_buttons is None

    def test_show_me_prefix_is_case_insensitive(self, shop):
        result = run_command(shop, "SHOW ME Tea")
        assert [card.title for card in result.message.carousel] == ["Green Tea"]
        assert result.message.carousel[0].subtitle == "6,500 MMK"
        assert result.message.text == "Here are the items in the Tea category:"

    def test_carousel_is_capped(self, make_shop):
        items = [CatalogItem(id=f"p{i}", name=f"Mug {i}", category="Mugs") for i in range(12)]
        result = run_command(make_shop(items=items), "Show me Mugs")
        assert len(result.message.carousel) == MAX_CAROUSEL_CARDS

    def test_carousel_uses_item_buttons(self, make_shop):
        item = CatalogItem(
            id="p1",
            name="Mug",
            category="Mugs",
            buttons=[
                PersistentMenuItem(id="b1", type=PersistentMenuItemType.WEB_URL, title="Shop", url="https://x/mug"),
            ],
        )
        card = run_command(make_shop(items=[item]), "Show me Mugs").message.carousel[0]
        assert card.buttons[0].kind == "web_url"
        assert card.buttons[0].payload == "https://x/mug"

    def test_no_categories(self, make_shop):
        result = run_command(make_shop(items=[]), "SHOW_PRODUCT_CATEGORIES")
        assert result.message.text == "We don't have any product categories to show yet."

    def test_unknown_payment_method(self, shop):
        result = run_command(shop, "PAYMENT_INFO_ID_nope")
        assert result.message.text == "Sorry, I couldn't find that payment method."
        assert result.message.attachment is None

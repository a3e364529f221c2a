from app.services.locale_service import load_locale, translate


class TestTranslate:
    def test_english_label(self):
        assert translate("quick_reply_browse_by_category") == "Browse by Category"

    def test_parameters_are_formatted(self):
        assert translate("order_created_notice", record_id="TCCX-1001") == "Your order ID is TCCX-1001."

    def test_unknown_language_falls_back_to_english(self):
        assert translate("more_info", "my") == "More Info"

    def test_missing_key_returns_key(self):
        assert translate("no_such_label") == "no_such_label"

    def test_template_placeholders_survive_without_params(self):
        assert "{{orderId}}" in translate("payment_proof_confirmation")

    def test_unknown_locale_file_is_empty(self):
        assert load_locale("xx") == {}

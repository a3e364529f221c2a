from app.schemas.shop import KeywordRule, KeywordRuleScope
from app.services.keyword_service import match_keyword_rule


def _rule(rule_id, keywords, **kwargs):
    return KeywordRule(id=rule_id, keywords=keywords, reply=f"reply {rule_id}", **kwargs)


class TestMatchKeywordRule:
    def test_contains_is_default(self):
        rule = _rule("r1", "opening hours, open")
        assert match_keyword_rule("When are you OPEN today?", [rule]) == rule

    def test_exact_requires_whole_message(self):
        rule = _rule("r1", "price", match_type="exact")
        assert match_keyword_rule("  Price ", [rule]) == rule
        assert match_keyword_rule("what is the price", [rule]) is None

    def test_first_match_in_order_wins(self):
        first = _rule("r1", "tea")
        second = _rule("r2", "green tea")
        assert match_keyword_rule("green tea please", [first, second]) == first

    def test_disabled_rules_are_skipped(self):
        disabled = _rule("r1", "tea", enabled=False)
        enabled = _rule("r2", "tea")
        assert match_keyword_rule("tea", [disabled, enabled]) == enabled

    def test_scope_filters_context(self):
        comments_only = _rule("r1", "tea", apply_to=KeywordRuleScope(chat=False, comments=True))
        assert match_keyword_rule("tea", [comments_only], "chat") is None
        assert match_keyword_rule("tea", [comments_only], "comments") == comments_only

    def test_blank_triggers_never_match(self):
        rule = _rule("r1", " , ,")
        assert match_keyword_rule("anything", [rule]) is None

    def test_empty_message(self):
        assert match_keyword_rule("   ", [_rule("r1", "tea")]) is None

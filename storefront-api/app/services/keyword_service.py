from typing import Iterable, Literal, Optional

from app.schemas.shop import KeywordRule

KeywordContext = Literal["chat", "comments"]


def _triggers(rule: KeywordRule) -> list[str]:
    return [keyword.strip().lower() for keyword in rule.keywords.split(",") if keyword.strip()]


def _applies_to(rule: KeywordRule, context: KeywordContext) -> bool:
    if context == "chat":
        return rule.apply_to.chat
    return rule.apply_to.comments


def match_keyword_rule(
    text: str,
    rules: Iterable[KeywordRule],
    context: KeywordContext = "chat",
) -> Optional[KeywordRule]:
    """Return the first enabled rule, in configured order, whose trigger matches."""
    normalized = (text or "").strip().lower()
    if not normalized:
        return None

    for rule in rules:
        if not rule.enabled or not _applies_to(rule, context):
            continue
        triggers = _triggers(rule)
        if rule.match_type == "exact":
            if normalized in triggers:
                return rule
        elif any(trigger in normalized for trigger in triggers):
            return rule
    return None

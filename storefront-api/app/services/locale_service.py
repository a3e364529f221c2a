from functools import lru_cache
from pathlib import Path

import yaml

from app.logging_config import get_logger

logger = get_logger("locale_service")

_LOCALES_DIR = Path(__file__).resolve().parents[1] / "locales"
DEFAULT_LANGUAGE = "en"


@lru_cache(maxsize=16)
def load_locale(language: str) -> dict[str, str]:
    path = _LOCALES_DIR / f"{language}.yaml"
    if not path.exists():
        return {}
    with path.open(encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        logger.warning(f"Locale file {path.name} is not a mapping, ignoring")
        return {}
    return {str(key): str(value) for key, value in data.items()}


def translate(key: str, language: str = DEFAULT_LANGUAGE, **params: object) -> str:
    """Look up a default label, falling back to English and then to the key itself."""
    text = load_locale(language).get(key)
    if text is None and language != DEFAULT_LANGUAGE:
        text = load_locale(DEFAULT_LANGUAGE).get(key)
    if text is None:
        logger.warning(f"Missing locale key: {key}")
        return key
    if params:
        return text.format(**params)
    return text

"""Model selection and language lookup logic."""
import os
from typing import Optional

from pagetranslate.config.constants import LANGUAGE_MAP
from pagetranslate.config.settings import _DEFAULT_MODEL, _DEFAULT_TARGET

_EXCLUDED_MARKERS = ('experimental', 'deprecated')


def normalize_model_name(name: Optional[str]) -> str:
    """Return a bare model id ("models/gemini-pro" -> "gemini-pro").

    Falls back to GEMINI_MODEL (or the built-in default) when empty.
    """
    value = (name or '').strip()
    if value.startswith('models/'):
        value = value[len('models/'):]
    if not value:
        value = os.getenv('GEMINI_MODEL', _DEFAULT_MODEL).strip() or _DEFAULT_MODEL
        if value.startswith('models/'):
            value = value[len('models/'):]
    return value


def get_target_language() -> str:
    """Return the configured target language code."""
    return os.getenv('TARGET_LANGUAGE', _DEFAULT_TARGET).strip() or _DEFAULT_TARGET


def is_supported_model(name: str, description: str = '') -> bool:
    """Keep Gemini models that are neither experimental nor deprecated."""
    lowered = name.lower()
    if 'gemini' not in lowered or 'exp' in lowered:
        return False
    details = description.lower()
    return not any(marker in details for marker in _EXCLUDED_MARKERS)


def get_language_name(code: str) -> str:
    """Map a language code to the name used in prompts.

    Unknown codes are passed through so callers can use free-form names.
    """
    return LANGUAGE_MAP.get(code, LANGUAGE_MAP.get(code.lower(), code))

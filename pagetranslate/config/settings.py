"""Environment-based settings and runtime configuration.

All settings that depend on environment variables or runtime state.
"""
import os

from pagetranslate.config.constants import (
    DEFAULT_MODEL,
    DEFAULT_TARGET_LANGUAGE,
    GEMINI_API_BASE as _DEFAULT_API_BASE,
)

# Gemini API credentials and endpoint
GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')
GEMINI_API_BASE = os.getenv('GEMINI_API_BASE', _DEFAULT_API_BASE).rstrip('/')
# No client-side timeout unless GEMINI_TIMEOUT is set (seconds)
_TIMEOUT_VALUE = os.getenv('GEMINI_TIMEOUT', '').strip()
GEMINI_TIMEOUT = float(_TIMEOUT_VALUE) if _TIMEOUT_VALUE else None

# Translation target and model (runtime configurable)
_DEFAULT_TARGET = os.getenv('TARGET_LANGUAGE', DEFAULT_TARGET_LANGUAGE).strip() or DEFAULT_TARGET_LANGUAGE
_DEFAULT_MODEL = os.getenv('GEMINI_MODEL', DEFAULT_MODEL).strip() or DEFAULT_MODEL

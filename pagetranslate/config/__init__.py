"""Centralized configuration for the page translator.

Package structure:
- settings.py: Environment-based configuration (API key, endpoint, timeout)
- constants.py: Static constants (scheduler defaults, language maps)
- models.py: Model selection logic (normalize_model_name, is_supported_model)
- options.py: Flat key-value option store (SchedulerOptions, RequestContext)

All exports are re-exported here.
"""

# Re-export environment settings
from pagetranslate.config.settings import (
    GEMINI_API_KEY,
    GEMINI_API_BASE,
    GEMINI_TIMEOUT,
)

# Re-export static constants
from pagetranslate.config.constants import (
    BATCH_SEPARATOR,
    DEFAULT_MODEL,
    DEFAULT_TARGET_LANGUAGE,
    LANGUAGE_MAP,
    MIN_TEXT_LENGTH,
    SAFETY_CATEGORIES,
    TRANSLATION_TEMPERATURE,
)

# Re-export model logic functions
from pagetranslate.config.models import (
    get_language_name,
    get_target_language,
    is_supported_model,
    normalize_model_name,
)

# Re-export option store parsing
from pagetranslate.config.options import (
    RequestContext,
    SchedulerOptions,
)

__all__ = [
    # Settings
    'GEMINI_API_KEY',
    'GEMINI_API_BASE',
    'GEMINI_TIMEOUT',
    # Constants
    'BATCH_SEPARATOR',
    'DEFAULT_MODEL',
    'DEFAULT_TARGET_LANGUAGE',
    'LANGUAGE_MAP',
    'MIN_TEXT_LENGTH',
    'SAFETY_CATEGORIES',
    'TRANSLATION_TEMPERATURE',
    # Model logic
    'get_language_name',
    'get_target_language',
    'is_supported_model',
    'normalize_model_name',
    # Options
    'RequestContext',
    'SchedulerOptions',
]

"""Static constants and lookup tables.

Configuration values that don't change at runtime.
"""

# Token bucket: one token every 2 seconds, bursts of up to 5 requests
DEFAULT_CAPACITY = 5
DEFAULT_REFILL_PER_SECOND = 0.5

# Retry parameters (backoff = min(base * 1.5**attempt, max))
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_BACKOFF_MS = 2000
DEFAULT_MAX_BACKOFF_MS = 30000
BACKOFF_FACTOR = 1.5

# Dispatch parameters
DEFAULT_MAX_CONCURRENT = 3  # batches per wave
DEFAULT_MIN_INTERVAL_MS = 800  # spacing between queue entries and waves
MIN_WAVE_PACING_MS = 500  # floor for the pause between waves

# Segmentation and batching
DEFAULT_MAX_SEGMENT_LENGTH = 1000
DEFAULT_MIN_SEGMENT_LENGTH = 50
DEFAULT_MAX_BATCH_CHARS = 3000
BATCH_SEPARATOR = "\n"

# Shorter texts are not worth a request
MIN_TEXT_LENGTH = 2

# Gemini API
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-pro"
DEFAULT_TARGET_LANGUAGE = "zh"
TRANSLATION_TEMPERATURE = 0.1  # Lower = more deterministic
SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# Language mapping (ISO 639-1 code → full name)
LANGUAGE_MAP = {
    'en': 'English',
    'de': 'German',
    'fr': 'French',
    'es': 'Spanish',
    'ru': 'Russian',
    'hi': 'Hindi',
    'zh': 'Simplified Chinese',
    'zh-TW': 'Traditional Chinese',
    'pt': 'Portuguese',
    'it': 'Italian',
    'ja': 'Japanese',
    'ko': 'Korean',
    'ar': 'Arabic'
}

"""Tests for option store parsing and model selection"""
import pytest

from pagetranslate.config import (
    RequestContext,
    SchedulerOptions,
    get_language_name,
    is_supported_model,
    normalize_model_name,
)
from pagetranslate.errors import ConfigurationError


class TestSchedulerOptions:
    """Tests for SchedulerOptions.from_mapping()"""

    def test_defaults(self):
        options = SchedulerOptions.from_mapping(None)

        assert options == SchedulerOptions()
        assert options.capacity == 5
        assert options.refill_per_second == 0.5
        assert options.max_retries == 3
        assert options.max_concurrent == 3
        assert options.max_batch_chars == 3000

    def test_seconds_properties(self):
        options = SchedulerOptions()

        assert options.base_backoff == pytest.approx(2.0)
        assert options.max_backoff == pytest.approx(30.0)
        assert options.min_interval == pytest.approx(0.8)
        assert options.wave_pacing == pytest.approx(0.8)

    def test_wave_pacing_has_floor(self):
        assert SchedulerOptions(min_interval_ms=100).wave_pacing == pytest.approx(0.5)
        assert SchedulerOptions(min_interval_ms=0).wave_pacing == pytest.approx(0.5)

    def test_values_from_store(self):
        options = SchedulerOptions.from_mapping({
            'maxRetries': '5',
            'refillPerSecond': '1.5',
            'baseBackoffMs': 1000,
            'maxConcurrent': 2.0,
            'minIntervalMs': None,
        })

        assert options.max_retries == 5
        assert options.refill_per_second == 1.5
        assert options.base_backoff_ms == 1000.0
        assert options.max_concurrent == 2
        assert options.min_interval_ms == 800

    def test_unknown_and_context_keys_ignored(self):
        options = SchedulerOptions.from_mapping({
            'apiKey': 'secret',
            'model': 'gemini-pro',
            'theme': 'dark',
        })

        assert options == SchedulerOptions()

    @pytest.mark.parametrize("store", [
        {'maxRetries': 'many'},
        {'maxRetries': -1},
        {'maxRetries': 1.5},
        {'maxConcurrent': 0},
        {'capacity': True},
        {'refillPerSecond': 0},
        {'maxBatchChars': [3000]},
        {'minSegmentLength': 200, 'maxSegmentLength': 100},
    ])
    def test_invalid_values(self, store):
        with pytest.raises(ConfigurationError):
            SchedulerOptions.from_mapping(store)

    @pytest.mark.parametrize("kwargs", [
        {'max_concurrent': 0},
        {'capacity': 0},
        {'refill_per_second': 0.0},
        {'max_retries': -1},
        {'max_batch_chars': 0},
        {'min_interval_ms': -1.0},
        {'min_segment_length': 500, 'max_segment_length': 100},
    ])
    def test_direct_construction_is_validated(self, kwargs):
        with pytest.raises(ConfigurationError):
            SchedulerOptions(**kwargs)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SchedulerOptions.from_mapping({'maxRetries': 'many'})

    def test_to_mapping_uses_store_keys(self):
        options = SchedulerOptions(max_retries=1, max_concurrent=4)
        store = options.to_mapping()

        assert store['maxRetries'] == 1
        assert store['maxConcurrent'] == 4
        assert SchedulerOptions.from_mapping(store) == options


class TestRequestContext:
    """Tests for RequestContext.from_mapping()"""

    def test_values_from_store(self):
        context = RequestContext.from_mapping({
            'apiKey': '  abc123  ',
            'targetLanguage': 'ja',
            'model': 'models/gemini-1.5-pro',
        })

        assert context.api_key == 'abc123'
        assert context.target_language == 'ja'
        assert context.model == 'gemini-1.5-pro'
        assert context.has_credential

    def test_missing_key_has_no_credential(self, monkeypatch):
        monkeypatch.setenv('TARGET_LANGUAGE', 'de')
        monkeypatch.setenv('GEMINI_MODEL', 'gemini-1.5-flash')

        context = RequestContext.from_mapping({'apiKey': '   '})

        assert context.api_key is None
        assert not context.has_credential
        assert context.target_language == 'de'
        assert context.model == 'gemini-1.5-flash'


class TestModels:
    """Model name handling"""

    def test_normalize_strips_prefix(self):
        assert normalize_model_name('models/gemini-pro') == 'gemini-pro'
        assert normalize_model_name(' gemini-1.5-flash ') == 'gemini-1.5-flash'

    def test_normalize_falls_back_to_env(self, monkeypatch):
        monkeypatch.setenv('GEMINI_MODEL', 'models/gemini-1.5-pro')

        assert normalize_model_name(None) == 'gemini-1.5-pro'
        assert normalize_model_name('') == 'gemini-1.5-pro'

    @pytest.mark.parametrize("name, description, expected", [
        ('models/gemini-pro', 'The best model for scaling.', True),
        ('models/gemini-1.5-flash', '', True),
        ('models/gemini-exp-1206', '', False),
        ('models/text-bison-001', 'PaLM', False),
        ('models/gemini-1.0-pro-vision', 'Deprecated in July.', False),
        ('models/gemini-2.0-flash-thinking', 'An experimental thinking model', False),
    ])
    def test_is_supported_model(self, name, description, expected):
        assert is_supported_model(name, description) is expected

    @pytest.mark.parametrize("code, name", [
        ('zh', 'Simplified Chinese'),
        ('zh-TW', 'Traditional Chinese'),
        ('DE', 'German'),
        ('Klingon', 'Klingon'),
    ])
    def test_get_language_name(self, code, name):
        assert get_language_name(code) == name

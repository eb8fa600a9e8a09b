"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from copilot.config import (
    AppConfig,
    BusinessConfig,
    ChatConfig,
    ModelConfig,
    StoreConfig,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_invalid_temperature_too_high(self):
        config = replace(AppConfig(), model=replace(ModelConfig(), llm_temperature=3.0))
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            _validate_config(config)

    def test_invalid_temperature_negative(self):
        config = replace(AppConfig(), model=replace(ModelConfig(), llm_temperature=-0.5))
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            _validate_config(config)

    def test_invalid_extraction_timeout(self):
        config = replace(AppConfig(), model=replace(ModelConfig(), extraction_timeout_sec=0))
        with pytest.raises(ValueError, match="EXTRACTION_TIMEOUT"):
            _validate_config(config)

    def test_invalid_max_sessions(self):
        config = replace(AppConfig(), store=replace(StoreConfig(), max_sessions=-1))
        with pytest.raises(ValueError, match="CHAT_STORE_MAX_SESSIONS"):
            _validate_config(config)

    def test_invalid_max_input_length(self):
        config = replace(AppConfig(), chat=replace(ChatConfig(), max_input_length=0))
        with pytest.raises(ValueError, match="MAX_INPUT_LENGTH"):
            _validate_config(config)

    def test_whatsapp_number_must_be_digits(self):
        config = replace(AppConfig(), business=replace(BusinessConfig(), whatsapp_number="55-11-abc"))
        with pytest.raises(ValueError, match="HANDOVER_WHATSAPP_NUMBER"):
            _validate_config(config)

    def test_whatsapp_number_may_have_leading_plus(self):
        config = replace(AppConfig(), business=replace(BusinessConfig(), whatsapp_number="+5511999998888"))
        _validate_config(config)

    def test_safe_int_parsing(self):
        from copilot.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_rejects_garbage(self, monkeypatch):
        from copilot.config import _safe_int

        monkeypatch.setenv("COPILOT_TEST_INT", "many")
        with pytest.raises(ValueError, match="COPILOT_TEST_INT"):
            _safe_int("COPILOT_TEST_INT", "1")

    def test_safe_float_parsing(self):
        from copilot.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

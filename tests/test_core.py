"""
Tests for settings, structured logging setup and the error taxonomy.
"""

import structlog

from crosstax.core.config import Settings, settings
from crosstax.core.exceptions import InvalidConfiguration, InvalidInput, TaxEngineError
from crosstax.core.logging import configure_logging


class TestExceptions:
    """Error payloads handed to the calling layer."""

    def test_invalid_input_payload(self):
        error = InvalidInput("days must be positive", field="days", details={"value": -1})

        assert isinstance(error, TaxEngineError)
        assert error.to_dict() == {
            "error": "invalid_input",
            "message": "days must be positive",
            "field": "days",
            "details": {"value": -1},
        }

    def test_configuration_payload_omits_empty_keys(self):
        assert InvalidConfiguration("bad table").to_dict() == {
            "error": "invalid_configuration",
            "message": "bad table",
        }


class TestConfigureLogging:
    """Renderer follows LOG_JSON."""

    def test_json_renderer(self):
        try:
            configure_logging(Settings(LOG_JSON=True))
            assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
        finally:
            configure_logging(settings)

    def test_console_renderer(self):
        configure_logging(Settings(LOG_JSON=False, LOG_LEVEL="debug"))
        try:
            assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
        finally:
            configure_logging(settings)


def test_settings_defaults():
    defaults = Settings()

    assert defaults.TAX_YEAR == 2025
    assert (defaults.TAX_PARAMETERS_DIR / "2025.yaml").exists()

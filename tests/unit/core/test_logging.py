from unittest.mock import patch

import structlog

from idleness_exporter.shared.core.config import Settings
from idleness_exporter.shared.core.logging import credential_redactor, setup_logging


def test_credential_redactor_masks_nested_secrets():
    event = {
        "event": "gcp_request_failed",
        "headers": {"Authorization": "Bearer abc", "accept": "application/json"},
        "access_token": "abc",
        "attempts": [{"refresh_token": "xyz", "status": 503}],
        "project": "p",
    }

    redacted = credential_redactor(None, "error", event)

    assert redacted["headers"] == {"Authorization": "[REDACTED]", "accept": "application/json"}
    assert redacted["access_token"] == "[REDACTED]"
    assert redacted["attempts"] == [{"refresh_token": "[REDACTED]", "status": 503}]
    assert redacted["project"] == "p"


def _configured_renderer(settings: Settings):
    with patch("structlog.configure") as configure, patch("logging.basicConfig") as basic:
        setup_logging(settings)
    processors = configure.call_args.kwargs["processors"]
    return processors, basic.call_args.kwargs["level"]


def test_logfmt_is_the_default_format():
    processors, level = _configured_renderer(Settings())

    assert isinstance(processors[-1], structlog.processors.LogfmtRenderer)
    assert credential_redactor in processors
    assert level == 20


def test_json_format_and_debug_level():
    processors, level = _configured_renderer(Settings(LOG_FORMAT="json", LOG_LEVEL="debug"))

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert level == 10


def test_debug_mode_uses_console_renderer():
    processors, _ = _configured_renderer(Settings(DEBUG=True))

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

"""
Tests para el logging estructurado del coach.
"""

from uuid import uuid4

import pytest
import structlog
from structlog.testing import capture_logs

from config.settings import LoggingConfig, LogLevel
from mathcoach.core.types import Category, PolicyDecision
from mathcoach.utils import logging as coach_logging
from mathcoach.utils.logging import (
    PREVIEW_CHARS,
    configure_logging,
    log_coach_decision,
    log_guardrail_check,
    log_model_call,
    log_model_output,
    session_context,
    truncate_previews,
)


@pytest.fixture
def restore_logging():
    yield
    configure_logging(LoggingConfig())


class TestTruncatePreviews:
    """Tests del procesador de previews."""

    def test_long_preview_cut(self):
        event = truncate_previews(None, "info", {"response_preview": "x" * 500})

        assert event["response_preview"] == "x" * PREVIEW_CHARS + "..."

    def test_newlines_flattened(self):
        event = truncate_previews(None, "info", {"output_preview": "So 3x = 15.\n\nx = 5"})

        assert event["output_preview"] == "So 3x = 15. x = 5"

    def test_other_fields_untouched(self):
        event = truncate_previews(None, "info", {"event": "coach_turn", "text": "a\nb" * 100})

        assert event["text"] == "a\nb" * 100


class TestDomainEvents:
    """Tests de los eventos propios del coach."""

    def test_leak_match_is_warning(self):
        with capture_logs() as logs:
            log_guardrail_check(
                structlog.get_logger("test"),
                "response_scanner",
                Category.ANSWER_LEAK.value,
                True,
                (r"the\s+answer\s+is",),
                alert=True,
            )

        assert logs == [{
            "event": "guardrail_match",
            "log_level": "warning",
            "detector": "response_scanner",
            "category": "answer_leak",
            "pattern": r"the\s+answer\s+is",
            "pattern_count": 1,
        }]

    def test_student_match_is_info(self):
        with capture_logs() as logs:
            log_guardrail_check(
                structlog.get_logger("test"),
                "message_classifier",
                Category.STUCK.value,
                True,
                (r"\bi\s+give\s+up",),
            )

        assert logs[0]["log_level"] == "info"

    def test_no_match_is_debug(self, restore_logging):
        configure_logging(LoggingConfig(level=LogLevel.DEBUG))

        with capture_logs() as logs:
            log_guardrail_check(structlog.get_logger("test"), "message_classifier", "none", False)

        assert logs == [{"event": "guardrail_clear", "log_level": "debug", "detector": "message_classifier"}]

    def test_coach_decision(self):
        decision = PolicyDecision.hint(2, "Which operation undoes the + 7?")

        with capture_logs() as logs:
            log_coach_decision(structlog.get_logger("test"), decision)

        assert logs[0]["event"] == "coach_turn"
        assert logs[0]["decision"] == "hint"
        assert logs[0]["hint_tier"] == 2
        assert "student_category" not in logs[0]

    def test_redirect_decision_carries_student_category(self):
        decision = PolicyDecision.redirect(Category.ANSWER_SEEKING, "Let's think it through.")

        with capture_logs() as logs:
            log_coach_decision(structlog.get_logger("test"), decision, "answer_seeking")

        assert logs[0]["student_category"] == "answer_seeking"
        assert logs[0]["generator_invoked"] is False
        assert "hint_tier" not in logs[0]


class TestModelIO:
    """Tests del volcado opcional de prompts y salidas del generador."""

    MESSAGES = [
        {"role": "system", "content": "You are a coach."},
        {"role": "user", "content": "I'm stuck"},
    ]

    def test_prompt_hidden_by_default(self, restore_logging):
        configure_logging(LoggingConfig())

        with capture_logs() as logs:
            log_model_call(structlog.get_logger("test"), "fake/coach", "coach_reply", self.MESSAGES)
            log_model_output(structlog.get_logger("test"), "fake/coach", "coach_reply", "x = 5")

        assert len(logs) == 1
        assert "prompt_preview" not in logs[0]

    def test_prompt_and_output_when_enabled(self, restore_logging):
        configure_logging(LoggingConfig(
            level=LogLevel.DEBUG,
            log_model_inputs=True,
            log_model_outputs=True,
        ))

        with capture_logs() as logs:
            log_model_call(structlog.get_logger("test"), "fake/coach", "hint", self.MESSAGES, tier=1)
            log_model_output(structlog.get_logger("test"), "fake/coach", "hint", "x = 5")

        assert logs[0]["prompt_preview"] == "I'm stuck"
        assert logs[0]["tier"] == 1
        assert logs[1]["event"] == "model_output"
        assert logs[1]["output_chars"] == 5


class TestConfiguration:
    """Tests de configuración y contexto."""

    def test_session_context_binds_session_id(self):
        session_id = uuid4()

        with session_context(session_id, tier=1):
            bound = structlog.contextvars.get_contextvars()
            assert bound["session_id"] == str(session_id)
            assert bound["tier"] == 1

        assert "session_id" not in structlog.contextvars.get_contextvars()

    def test_console_format_and_level(self, restore_logging):
        configure_logging(LoggingConfig(level=LogLevel.WARNING, format="console"))

        processors = structlog.get_config()["processors"]
        assert coach_logging.truncate_previews in processors
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_without_timestamps(self, restore_logging):
        configure_logging(LoggingConfig(include_timestamps=False))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

"""Tests for structured logging and context propagation."""

import json
import logging

from mealcart.logging_config import (
    ContextualFormatter,
    LoggingContext,
    StructuredJsonFormatter,
    clear_context,
    list_id_ctx,
    request_id_ctx,
    set_context,
)


def make_record(message: str = "Generated 'Week 2'") -> logging.LogRecord:
    return logging.LogRecord(
        name="mealcart.plan.shopping_list",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


class TestLoggingContext:
    """Tests for context variables and formatters."""

    def test_context_manager_restores_previous_values(self):
        with LoggingContext(request_id="req-1"):
            with LoggingContext(list_id="list-1"):
                assert request_id_ctx.get() == "req-1"
                assert list_id_ctx.get() == "list-1"
            assert list_id_ctx.get() is None
        assert request_id_ctx.get() is None

    def test_set_and_clear(self):
        set_context(request_id="req-2", list_id="list-2")
        assert (request_id_ctx.get(), list_id_ctx.get()) == ("req-2", "list-2")

        clear_context()
        assert (request_id_ctx.get(), list_id_ctx.get()) == (None, None)

    def test_json_formatter_includes_context(self):
        with LoggingContext(request_id="req-3", list_id="list-3"):
            data = json.loads(StructuredJsonFormatter().format(make_record()))

        assert data["message"] == "Generated 'Week 2'"
        assert data["level"] == "INFO"
        assert data["request_id"] == "req-3"
        assert data["list_id"] == "list-3"
        assert data["location"]["line"] == 1

    def test_text_formatter_shortens_ids(self):
        with LoggingContext(list_id="0123456789abcdef"):
            line = ContextualFormatter().format(make_record())

        assert "[list=01234567]" in line
        assert line.endswith("| Generated 'Week 2'")

import logging
from unittest.mock import Mock

from mirror_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


class TestFormatExceptionMessage:
    def test_plain_message(self):
        assert format_exception_message(ValueError("Network error")) == "Network error"

    def test_empty_message_uses_type_name(self):
        assert format_exception_message(TimeoutError()) == "TimeoutError"

    def test_broken_str(self):
        assert "BrokenStrException" in format_exception_message(BrokenStrException())

    def test_exception_group(self):
        group = ExceptionGroup("task group failed", [ConnectionError("refused")])
        message = format_exception_message(group)
        assert "task group failed" in message
        assert "ConnectionError: refused" in message

    def test_none(self):
        assert format_exception_message(None) == "None"


class TestLogExceptionWithDetails:
    def test_regular_exception(self):
        logger = Mock(spec=logging.Logger)
        error = RuntimeError("boom")

        log_exception_with_details(logger, "[Mirror]", error, level=logging.WARNING)

        logger.log.assert_called_once()
        args, kwargs = logger.log.call_args
        assert args == (logging.WARNING, "[Mirror] Exception: boom")
        assert kwargs["exc_info"] is error

    def test_exception_group_logs_each_sub_exception(self):
        logger = Mock(spec=logging.Logger)
        group = ExceptionGroup("failed", [OSError("a"), ValueError("b")])

        log_exception_with_details(logger, "[Mirror]", group)

        messages = [c.args[1] for c in logger.log.call_args_list]
        assert len(messages) == 3
        assert "2 sub-exceptions" in messages[0]
        assert "Sub-exception 1: OSError: a" in messages[1]
        assert "Sub-exception 2: ValueError: b" in messages[2]

    def test_never_raises_when_logger_fails(self):
        logger = Mock(spec=logging.Logger)
        logger.log.side_effect = RuntimeError("handler broken")

        log_exception_with_details(logger, "[Mirror]", ValueError("x"))

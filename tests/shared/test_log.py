"""Tests for logging helpers."""

import sys

from loguru import logger

from streamup.shared.utils import format_error, init_logger, log_taskgroup_errors


def _raise(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as e:
        return e


class TestLogHelpers:
    """Tests for format_error, log_taskgroup_errors and init_logger."""

    def test_format_error_includes_traceback(self):
        """Test the formatted error carries the type and message."""
        text = format_error(_raise(ValueError("bad value")))

        assert "Traceback" in text
        assert "ValueError: bad value" in text

    def test_taskgroup_errors_logged_per_sub_exception(self):
        """Test each sub-exception of a group is formatted separately."""
        group = ExceptionGroup("demo", [_raise(ValueError("one")), _raise(KeyError("two"))])

        errors = log_taskgroup_errors(group)

        assert len(errors) == 2
        assert errors[0].startswith("TaskGroup sub-exception[1]:")
        assert "KeyError" in errors[1]

    def test_plain_error_logged_once(self):
        """Test a non-group exception yields one entry."""
        assert len(log_taskgroup_errors(_raise(RuntimeError("solo")))) == 1

    def test_init_logger_levels(self, capsys):
        """Test DEBUG selects the verbose sink level."""
        try:
            init_logger(debug=False, worker_name="test")
            logger.debug("hidden")
            logger.info("shown")
            quiet = capsys.readouterr().err

            init_logger(debug=True, worker_name="test")
            logger.debug("visible now")
            verbose = capsys.readouterr().err
        finally:
            logger.remove()
            logger.add(sys.__stderr__, level="INFO")

        assert "hidden" not in quiet
        assert "shown" in quiet
        assert "visible now" in verbose

"""Tests for the config module."""
import io
import logging
import threading

import pytest

from config.constants import INTERVALS, SCAN, STORAGE
from config.exceptions import (
    BackendCommandError,
    CommandInProgressError,
    ConfigurationError,
    InvalidTransitionError,
    NetViewError,
    RangeFailure,
    RangeSide,
    RangeValidationError,
    StorageError,
    ValidationError,
)
from config.logging_config import (
    ConsoleFormatter,
    LogContext,
    get_logger,
    log_exception,
    setup_logging,
)


class TestConstants:
    """Tests for constants module."""

    def test_intervals_are_positive(self):
        """All interval values should be positive."""
        assert INTERVALS.MONITOR_POLL_SECONDS > 0
        assert INTERVALS.SIMULATED_FIRST_HOST_DELAY >= 0
        assert INTERVALS.THREAD_JOIN_TIMEOUT_SECONDS > 0

    def test_simulated_delay_bounds(self):
        assert INTERVALS.SIMULATED_HOST_DELAY_MIN <= INTERVALS.SIMULATED_HOST_DELAY_MAX

    def test_default_ports_valid(self):
        """Default service ports should be inside the port range."""
        assert SCAN.DEFAULT_SERVICE_PORTS == (22, 80, 443, 8080, 445)
        assert all(SCAN.MIN_PORT <= p <= SCAN.MAX_PORT for p in SCAN.DEFAULT_SERVICE_PORTS)

    def test_history_limit(self):
        assert SCAN.MAX_HISTORY_ITEMS == 10

    def test_storage_config_has_required_fields(self):
        """Storage config should have all required fields."""
        assert STORAGE.DATA_DIR_NAME
        assert STORAGE.SETTINGS_FILE
        assert STORAGE.HISTORY_DB_FILE
        assert STORAGE.LOG_FILE

    def test_constants_are_frozen(self):
        with pytest.raises(Exception):
            SCAN.MAX_HISTORY_ITEMS = 20


class TestExceptions:
    """Tests for custom exceptions."""

    def test_base_exception(self):
        """NetViewError should work with message and details."""
        exc = NetViewError("Test error", {"key": "value"})
        assert exc.message == "Test error"
        assert exc.details == {"key": "value"}
        assert "Test error" in str(exc)
        assert "key" in str(exc)

    def test_exception_without_details(self):
        """Exceptions should work without details."""
        exc = StorageError("Storage failed")
        assert exc.message == "Storage failed"
        assert exc.details == {}
        assert str(exc) == "Storage failed"

    def test_range_validation_error(self):
        exc = RangeValidationError(
            "Start IP address is not valid",
            reason=RangeFailure.INVALID_ADDRESS,
            side=RangeSide.START,
            start="300.0.0.0",
        )
        assert exc.side is RangeSide.START
        assert exc.details == {"reason": "invalid_address", "side": "start", "start": "300.0.0.0"}
        assert not exc.is_inverted

    def test_backend_command_error(self):
        exc = BackendCommandError("Backend busy", command="stop_monitoring")
        assert exc.command == "stop_monitoring"
        assert exc.details["command"] == "stop_monitoring"

    def test_exception_inheritance(self):
        """All custom exceptions should inherit from NetViewError."""
        assert issubclass(RangeValidationError, ValidationError)
        assert issubclass(ValidationError, NetViewError)
        assert issubclass(BackendCommandError, NetViewError)
        assert issubclass(CommandInProgressError, InvalidTransitionError)
        assert issubclass(StorageError, NetViewError)
        assert issubclass(ConfigurationError, NetViewError)


class TestLogging:
    """Tests for logging configuration."""

    def test_setup_logging_creates_logger(self, temp_data_dir):
        """setup_logging should return a configured logger."""
        logger = setup_logging(data_dir=temp_data_dir, console_output=False)
        assert logger is not None
        assert logger.name == 'netview'
        assert (temp_data_dir / STORAGE.LOG_FILE).exists()

    def test_setup_logging_without_file(self, temp_data_dir):
        target = temp_data_dir / "nested"
        setup_logging(data_dir=target, console_output=False, log_to_file=False)
        assert not target.exists()

    def test_get_logger_returns_child(self, temp_data_dir):
        """get_logger should return child of root logger."""
        setup_logging(data_dir=temp_data_dir, console_output=False)
        logger = get_logger("discovery.simulated")
        assert logger.name == 'netview.discovery.simulated'

    def test_get_logger_shortens_names(self):
        assert get_logger("a.b.c.d").name == 'netview.c.d'

    def test_log_context_measures_duration(self, temp_data_dir):
        """LogContext should measure operation duration."""
        setup_logging(data_dir=temp_data_dir, console_output=False)
        logger = get_logger(__name__)

        with LogContext(logger, "Test operation") as ctx:
            pass

        assert ctx.start_time is not None

    def test_log_context_does_not_swallow(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False)
        logger = get_logger(__name__)

        with pytest.raises(BackendCommandError):
            with LogContext(logger, "start_scan"):
                raise BackendCommandError("rejected")

    def test_log_exception(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False, debug=True)
        logger = get_logger("tests.log_exception")
        try:
            raise StorageError("disk full")
        except StorageError as e:
            log_exception(logger, "Saving history", e)

        for handler in logging.getLogger('netview').handlers:
            handler.flush()
        content = (temp_data_dir / STORAGE.LOG_FILE).read_text()
        assert "Saving history: StorageError: disk full" in content

    def test_file_lines_carry_thread_name(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False)
        worker = threading.Thread(target=lambda: get_logger("discovery.simulated").info("scan tick"),
                                  name="SimulatedBackend-Scan")
        worker.start()
        worker.join()

        for handler in logging.getLogger('netview').handlers:
            handler.flush()
        content = (temp_data_dir / STORAGE.LOG_FILE).read_text()
        assert "[SimulatedBackend-Scan] netview.discovery.simulated INFO: scan tick" in content

    def test_setup_twice_replaces_handlers(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=True)
        logger = setup_logging(data_dir=temp_data_dir, console_output=True)
        assert len(logger.handlers) == 2
        assert logger.propagate is False

    def test_console_formatter_plain_without_tty(self):
        formatter = ConsoleFormatter(io.StringIO())
        record = logging.LogRecord("netview.app.controller", logging.WARNING, __file__, 1,
                                   "stop rejected", None, None)
        line = formatter.format(record)
        assert "\033[" not in line
        assert line.endswith("WARNING netview.app.controller: stop rejected")

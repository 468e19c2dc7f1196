"""
Tests for configuration and structured logging
"""

import json
import logging
import sys
from decimal import Decimal

from loan_ledger import config as config_module
from loan_ledger.config import LoanLedgerConfig, get_config, reload_config
from loan_ledger.logging_config import JSONFormatter, get_logger, log_action, setup_logging


class TestConfig:
    """Test environment-based configuration"""

    def test_defaults(self):
        settings = LoanLedgerConfig()
        assert settings.interest_periods_per_year == 12
        assert settings.forbid_principal_below_paid is True
        assert Decimal(settings.rounding_epsilon) == Decimal('0.01')
        assert settings.log_format == "json"
        assert "default_currency" not in LoanLedgerConfig.model_fields

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LOAN_LEDGER_API_PORT", "9100")
        monkeypatch.setenv("LOAN_LEDGER_INTEREST_PERIODS_PER_YEAR", "52")
        monkeypatch.setenv("LOAN_LEDGER_USE_SQLITE", "true")
        settings = LoanLedgerConfig()
        assert settings.api_port == 9100
        assert settings.interest_periods_per_year == 52
        assert settings.use_sqlite is True

    def test_reload_replaces_global(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("LOAN_LEDGER_LOG_LEVEL", "DEBUG")
        try:
            reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
            assert config_module.config is reloaded
        finally:
            config_module.config = original

    def test_sqlite_path(self):
        assert LoanLedgerConfig(database_url="sqlite:///data/ledger.db").sqlite_path == "data/ledger.db"
        assert LoanLedgerConfig(database_url="sqlite:///").sqlite_path == ":memory:"


class TestStructuredLogging:
    """Test JSON log output"""

    def teardown_method(self):
        logger = logging.getLogger("loan_ledger.test")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    def test_log_action_fields(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("INFO", "loan_ledger.test", "json", str(log_file))

        log_action(logger, "info", "Loan payment recorded", tenant_id="tenant-a",
                   action="record_payment", resource="loan:L1",
                   extra={"total_amount": "443.21"})

        entry = json.loads(log_file.read_text().strip())
        assert entry["level"] == "INFO"
        assert entry["message"] == "Loan payment recorded"
        assert entry["tenant_id"] == "tenant-a"
        assert entry["action"] == "record_payment"
        assert entry["resource"] == "loan:L1"
        assert entry["extra"] == {"total_amount": "443.21"}
        assert "correlation_id" not in entry

    def test_below_level_is_dropped(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("WARNING", "loan_ledger.test", "json", str(log_file))
        log_action(logger, "info", "ignored")
        assert log_file.read_text() == ""

    def test_text_format(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("INFO", "loan_ledger.test", "text", str(log_file))
        logger.info("plain message")
        assert "INFO [loan_ledger.test] plain message" in log_file.read_text()

    def test_setup_replaces_handlers(self):
        setup_logging("INFO", "loan_ledger.test")
        logger = setup_logging("INFO", "loan_ledger.test")
        assert len(logger.handlers) == 1
        assert get_logger("loan_ledger.test") is logger

    def test_exception_included(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("bad amount")
        except ValueError:
            record = logging.getLogger("loan_ledger.test").makeRecord(
                "loan_ledger.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(formatter.format(record))
        assert "ValueError: bad amount" in entry["exception"]

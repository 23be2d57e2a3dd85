"""
Unit tests for the infrastructure and domain exception hierarchies.
"""

from sqlalchemy.exc import OperationalError

from progression.core import exceptions as infra
from progression.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    MalformedRuleError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from progression.modules.shared import exceptions as domain
from progression.modules.shared.exceptions import (
    ConcurrencyConflictError,
    UnknownActionError,
    UnknownTriggerError,
    ValidationError,
)


class TestInfrastructureExceptions:
    def test_store_unavailable(self):
        original = OperationalError("SELECT 1", {}, Exception("connection refused"))

        exc = StoreUnavailableError("progress", "progress.add_xp", original)

        assert isinstance(exc, DatabaseError)
        assert exc.error_code == "STORE_UNAVAILABLE"
        assert exc.is_retryable is True
        assert exc.severity is ErrorSeverity.WARNING
        assert exc.details["store"] == "progress"
        assert exc.original_error is original

    def test_store_timeout(self):
        exc = StoreTimeoutError("achievements", "achievements.insert_unlocks", 0.25)

        assert exc.error_code == "STORE_TIMEOUT"
        assert exc.timeout_seconds == 0.25
        assert exc.details["timeout_seconds"] == 0.25
        assert infra.is_transient_error(exc)

    def test_configuration_errors_are_critical(self):
        exc = MalformedRuleError("first-comment", "duplicate slug")

        assert isinstance(exc, ConfigurationError)
        assert exc.severity is ErrorSeverity.CRITICAL
        assert exc.is_retryable is False
        assert infra.should_alert(exc)
        assert "first-comment" in str(exc)

    def test_to_dict(self):
        data = ConfigurationError("XP_TARIFF", "missing").to_dict()

        assert data["error_type"] == "ConfigurationError"
        assert data["error_code"] == "CONFIG_ERROR"
        assert data["severity"] == "critical"
        assert data["details"]["config_key"] == "XP_TARIFF"

    def test_helpers_on_plain_exceptions(self):
        plain = RuntimeError("boom")

        assert infra.is_transient_error(plain) is False
        assert infra.get_error_severity(plain) is ErrorSeverity.ERROR


class TestDomainExceptions:
    def test_validation_error_code(self):
        exc = ValidationError("user_id", "must not be empty")

        assert exc.error_code == "VALIDATION_USER_ID"
        assert exc.severity is ErrorSeverity.INFO
        assert not domain.should_alert(exc)

    def test_unknown_tags(self):
        action = UnknownActionError("like", ["comment", "report"])
        trigger = UnknownTriggerError("onLike", ["onComment"])

        assert isinstance(action, ValidationError)
        assert isinstance(trigger, ValidationError)
        assert action.details["known"] == ["comment", "report"]
        assert domain.should_alert(trigger)

    def test_concurrency_conflict_is_retryable(self):
        exc = ConcurrencyConflictError("progress_record", "u-1", 25)

        assert exc.attempts == 25
        assert exc.error_code == "CONCURRENCY_CONFLICT"
        assert domain.is_transient_error(exc)
        assert infra.is_transient_error(exc)
        assert domain.get_error_severity(exc) is ErrorSeverity.WARNING

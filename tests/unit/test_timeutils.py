"""Unit tests for date arithmetic helpers."""

from datetime import UTC, datetime, timedelta, timezone

from agrifaas.utils.timeutils import ensure_utc


class TestEnsureUtc:
    """Tests for ensure_utc."""

    def test_naive_is_tagged_utc(self):
        """Test naive values are read as UTC."""
        assert ensure_utc(datetime(2026, 1, 1, 8, 0)) == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

    def test_aware_is_converted(self):
        """Test aware values are converted to UTC."""
        accra_east = timezone(timedelta(hours=2))
        value = datetime(2026, 1, 1, 10, 0, tzinfo=accra_east)
        assert ensure_utc(value) == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)


import pytest

from config import Settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.invoice_sequence_start == 1001
        assert settings.bill_history_limit == 50
        assert settings.analytics_timezone == "UTC"

    def test_known_timezone_accepted(self):
        assert Settings(analytics_timezone=" Asia/Kolkata ").analytics_timezone == "Asia/Kolkata"

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "", "../etc/passwd"])
    def test_unknown_timezone_rejected(self, name):
        with pytest.raises(ValueError):
            Settings(analytics_timezone=name)

    @pytest.mark.parametrize("limit", [0, -5])
    def test_history_limit_must_be_positive(self, limit):
        with pytest.raises(ValueError):
            Settings(bill_history_limit=limit)

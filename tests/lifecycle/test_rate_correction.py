"""
Administrative rate correction of an archived period.

Verifies:
- Only archived (or later) periods can be corrected
- The period type must match the start date
- Derived columns are recomputed with the new rates; raw amounts stay
- The rate set gets a new revision and the change is audited
"""

from decimal import Decimal

import pytest

from earnings_kernel.domain.values import ExchangeRateSet
from earnings_kernel.exceptions import (
    InvalidExchangeRateError,
    InvalidPeriodError,
    PrecedenceError,
)
from earnings_kernel.services.archive_store import ArchiveStoreService
from tests.conftest import PERIOD, TEST_ACTOR_ID, TEST_RATES

CORRECTED = ExchangeRateSet(Decimal("1.5"), TEST_RATES.gbp_usd, TEST_RATES.usd_cop)


@pytest.fixture
def archived(lifecycle, populated):
    lifecycle.archive(PERIOD.start, TEST_ACTOR_ID)
    return populated


def _correct(lifecycle, rates=CORRECTED, period_type="1-15"):
    return lifecycle.recompute_archived_period(PERIOD.start, period_type, rates, TEST_ACTOR_ID)


class TestRateCorrectionGuards:

    def test_open_period_rejected(self, lifecycle, populated):
        with pytest.raises(PrecedenceError) as exc_info:
            _correct(lifecycle)
        assert exc_info.value.current_state == "open"

    def test_period_type_mismatch(self, lifecycle, archived):
        with pytest.raises(InvalidPeriodError):
            _correct(lifecycle, period_type="16-31")

    def test_unknown_period_type(self, lifecycle, archived):
        with pytest.raises(InvalidPeriodError):
            _correct(lifecycle, period_type="monthly")

    def test_invalid_rates(self, lifecycle, archived, session_factory):
        bad = ExchangeRateSet(Decimal("0"), TEST_RATES.gbp_usd, TEST_RATES.usd_cop)
        with pytest.raises(InvalidExchangeRateError) as exc_info:
            _correct(lifecycle, rates=bad)
        assert exc_info.value.rate_name == "eur_usd"
        with session_factory() as session:
            assert ArchiveStoreService(session).rate_revision(PERIOD) == 1


class TestRateCorrection:

    def test_result(self, lifecycle, archived):
        result = _correct(lifecycle)
        assert result.period_code == PERIOD.code
        assert result.revision == 2
        assert result.models_recomputed == 3
        assert result.records_recomputed == 4
        assert Decimal(result.before["eur_usd"]) == Decimal("1.25")
        assert result.after["eur_usd"] == "1.5"

    def test_totals_recomputed(self, lifecycle, archived, session_factory):
        _correct(lifecycle)
        with session_factory() as session:
            archive = ArchiveStoreService(session)
            by_model = {e.model_id: e for e in archive.get_model_earnings(PERIOD)}
            assert archive.consistency_errors(PERIOD) == {}
        # big7 100 EUR x 1.5 x 0.84 x 80% plus 40 from chaturbate
        assert by_model[archived.alice].total_model_usd == Decimal("140.8")
        # USD and GBP platforms are unaffected by the EUR rate
        assert by_model[archived.carla].total_model_usd == Decimal("71.085")
        assert by_model[archived.loner].total_model_usd == Decimal("8")

    def test_summary_reflects_new_rates(self, lifecycle, archived):
        _correct(lifecycle)
        summary = lifecycle.period_summary(PERIOD.start)
        assert summary.total_gross_usd == Decimal("287.55")
        assert summary.total_model_usd == Decimal("219.885")

    def test_raw_amounts_unchanged(self, lifecycle, archived, session_factory):
        _correct(lifecycle)
        with session_factory() as session:
            rows = {
                (r.model_id, r.platform_code): r
                for r in ArchiveStoreService(session).archived_value_rows(PERIOD)
            }
        big7 = rows[(archived.alice, "big7")]
        assert big7.raw_amount == Decimal("100")
        assert big7.revision == 2

    def test_closed_period(self, lifecycle, archived):
        lifecycle.cleanup(PERIOD.start, TEST_ACTOR_ID)
        result = _correct(lifecycle)
        assert result.revision == 2
        assert lifecycle.status(PERIOD.start).state == "closed"

    def test_repeated_corrections_bump_revision(self, lifecycle, archived, session_factory):
        _correct(lifecycle)
        result = _correct(lifecycle, rates=TEST_RATES)
        assert result.revision == 3
        with session_factory() as session:
            assert ArchiveStoreService(session).get_rate_set(PERIOD).eur_usd == Decimal("1.25")

    def test_audited(self, lifecycle, archived, audit_events):
        _correct(lifecycle)
        assert "rate_correction_applied" in audit_events(PERIOD)

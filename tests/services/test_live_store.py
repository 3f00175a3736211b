"""
LiveStoreService: raw value writes, totals and freezes.

Verifies:
- One raw value per (model, platform, period); writes upsert
- Negative amounts are rejected
- Writes are rejected unless the period is OPEN
- Frozen platforms are read-only, whether frozen manually or by policy
- Bulk period operations touch the given period only
"""

import warnings
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import SAWarning

from earnings_kernel.domain.freeze import PlatformCutoffFreezePolicy
from earnings_kernel.domain.values import ModelEarnings, RawValue
from earnings_kernel.exceptions import (
    FrozenPlatformError,
    NegativeAmountError,
    PeriodNotOpenError,
)
from earnings_kernel.models.period_closure import ClosureState, PeriodClosure
from earnings_kernel.services.live_store import LiveStoreService
from tests.conftest import PERIOD, TEST_ACTOR_ID


@pytest.fixture
def live(session, deterministic_clock):
    return LiveStoreService(session, deterministic_clock)


def _close(session, state: ClosureState, period=PERIOD) -> None:
    session.add(
        PeriodClosure(
            period_date=period.start,
            period_type=period.period_type.value,
            state=state.value,
            version=1,
            created_by_id=TEST_ACTOR_ID,
        )
    )
    session.flush()


class TestRecordValue:

    def test_insert(self, live, seeded):
        value = live.record_value(seeded.alice, "big7", PERIOD, "100", TEST_ACTOR_ID)
        assert value == RawValue(seeded.alice, "big7", Decimal("100"))
        assert live.count_values(PERIOD) == 1

    def test_upsert_keeps_one_row(self, live, seeded):
        live.record_value(seeded.alice, "big7", PERIOD, Decimal("100"), TEST_ACTOR_ID)
        live.record_value(seeded.alice, "big7", PERIOD, Decimal("140"), TEST_ACTOR_ID)
        values = live.get_values(PERIOD, seeded.alice)
        assert len(values) == 1
        assert values[0].amount == Decimal("140")

    def test_zero_allowed(self, live, seeded):
        live.record_value(seeded.alice, "big7", PERIOD, 0, TEST_ACTOR_ID)
        assert live.count_values(PERIOD) == 1

    def test_negative_rejected(self, live, seeded):
        with pytest.raises(NegativeAmountError) as exc_info:
            live.record_value(seeded.alice, "big7", PERIOD, Decimal("-1"), TEST_ACTOR_ID)
        assert exc_info.value.code == "NEGATIVE_AMOUNT"
        assert live.count_values(PERIOD) == 0

    def test_models_with_values(self, live, seeded):
        live.record_value(seeded.alice, "big7", PERIOD, "1", TEST_ACTOR_ID)
        live.record_value(seeded.alice, "mondo", PERIOD, "1", TEST_ACTOR_ID)
        live.record_value(seeded.carla, "aw", PERIOD, "1", TEST_ACTOR_ID)
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            models = live.models_with_values(PERIOD)
        assert set(models) == {seeded.alice, seeded.carla}


class TestPeriodState:

    def test_no_closure_row_is_open(self, live):
        assert live.period_state(PERIOD) is ClosureState.OPEN

    @pytest.mark.parametrize(
        "state",
        [ClosureState.ARCHIVING, ClosureState.ARCHIVED, ClosureState.CLEANING, ClosureState.CLOSED],
    )
    def test_write_rejected_unless_open(self, live, seeded, session, state, captured_logs):
        _close(session, state)
        with pytest.raises(PeriodNotOpenError) as exc_info:
            live.record_value(seeded.alice, "big7", PERIOD, "1", TEST_ACTOR_ID)
        assert exc_info.value.state == state.value
        assert any(
            r["message"] == "model_value_rejected_period_not_open" for r in captured_logs()
        )

    def test_other_period_unaffected(self, live, seeded, session):
        _close(session, ClosureState.CLOSED, PERIOD.previous())
        live.record_value(seeded.alice, "big7", PERIOD, "1", TEST_ACTOR_ID)


class TestFreezes:

    def test_manual_freeze_blocks_writes(self, live, seeded):
        live.record_value(seeded.alice, "big7", PERIOD, "10", TEST_ACTOR_ID)
        added = live.freeze_platforms(PERIOD, seeded.alice, ["big7"], TEST_ACTOR_ID)
        assert added == frozenset({"big7"})
        with pytest.raises(FrozenPlatformError):
            live.record_value(seeded.alice, "big7", PERIOD, "99", TEST_ACTOR_ID)
        assert live.get_values(PERIOD, seeded.alice)[0].amount == Decimal("10")

    def test_freeze_is_per_model(self, live, seeded):
        live.freeze_platforms(PERIOD, seeded.alice, ["big7"], TEST_ACTOR_ID)
        live.record_value(seeded.bianca, "big7", PERIOD, "10", TEST_ACTOR_ID)

    def test_refreeze_is_noop(self, live, seeded):
        live.freeze_platforms(PERIOD, seeded.alice, ["big7"], TEST_ACTOR_ID)
        assert live.freeze_platforms(PERIOD, seeded.alice, ["big7", "aw"], TEST_ACTOR_ID) == {"aw"}
        assert live.frozen_platforms(PERIOD, seeded.alice) == {"big7", "aw"}

    def test_policy_freeze_recorded(self, session, seeded, deterministic_clock):
        cutoff = deterministic_clock.now() - timedelta(hours=1)
        live = LiveStoreService(
            session,
            deterministic_clock,
            freeze_policy=PlatformCutoffFreezePolicy({"big7"}, cutoff),
        )
        with pytest.raises(FrozenPlatformError):
            live.record_value(seeded.alice, "big7", PERIOD, "10", TEST_ACTOR_ID)
        assert live.frozen_platforms(PERIOD, seeded.alice) == {"big7"}
        live.record_value(seeded.alice, "mondo", PERIOD, "10", TEST_ACTOR_ID)

    def test_unfreeze_period(self, live, seeded):
        live.freeze_platforms(PERIOD, seeded.alice, ["big7"], TEST_ACTOR_ID)
        live.freeze_platforms(PERIOD.next(), seeded.alice, ["big7"], TEST_ACTOR_ID)
        assert live.unfreeze_period(PERIOD) == 1
        assert live.frozen_platforms(PERIOD.next(), seeded.alice) == {"big7"}


class TestPeriodOperations:

    def _earnings(self, model_id) -> ModelEarnings:
        return ModelEarnings(
            model_id=model_id,
            per_platform=(),
            total_gross_usd=Decimal("125"),
            total_model_usd=Decimal("100"),
            total_cop_model=Decimal("400000"),
        )

    def test_delete_period_values(self, live, seeded):
        live.record_value(seeded.alice, "big7", PERIOD, "1", TEST_ACTOR_ID)
        live.record_value(seeded.alice, "big7", PERIOD.next(), "1", TEST_ACTOR_ID)
        assert live.delete_period_values(PERIOD) == 1
        assert live.count_values(PERIOD) == 0
        assert live.count_values(PERIOD.next()) == 1

    def test_save_and_zero_totals(self, live, seeded, session):
        live.save_totals(PERIOD, self._earnings(seeded.alice), TEST_ACTOR_ID)
        live.save_totals(PERIOD, self._earnings(seeded.alice), TEST_ACTOR_ID)
        totals = live.get_totals(PERIOD)
        assert len(totals) == 1
        assert totals[0].total_agency_usd == Decimal("25")

        assert live.zero_period_totals(PERIOD, TEST_ACTOR_ID) == 1
        session.expire_all()
        assert live.get_totals(PERIOD)[0].total_model_usd == 0

    def test_restore_values_bypasses_checks(self, live, seeded, session):
        _close(session, ClosureState.CLOSED)
        restored = live.restore_values(
            PERIOD,
            [RawValue(seeded.alice, "big7", Decimal("10")), RawValue(seeded.alice, "aw", Decimal("0"))],
            TEST_ACTOR_ID,
        )
        assert restored == 2
        assert live.count_values(PERIOD) == 2


import pytest
from occupancy.clients import Space
from occupancy.errors import DEGENERATE_DURATION
from occupancy.services.billing import BillingCalculator, TIER_HOURLY, TIER_HALF_DAY, TIER_FULL_DAY


@pytest.fixture
def calculator():
    return BillingCalculator(half_day_hours=4, full_day_hours=8)


@pytest.fixture
def space():
    return Space(id=1, name='Open Space', capacity=10, price_hour=3000, price_half_day=10000, price_full_day=18000)


def test_overtime_billed_at_hourly_rate(calculator, space):
    # 14:05 -> 16:30 on a 2h booking
    breakdown = calculator.compute(space, 2.0, 2.42)
    assert breakdown.tier == TIER_HOURLY
    assert breakdown.base_cost == 6000
    assert breakdown.overtime_hours == pytest.approx(0.42)
    assert breakdown.overtime_cost == pytest.approx(1260)
    assert breakdown.total_cost == pytest.approx(7260)
    assert breakdown.warnings == []


def test_unused_reserved_time_still_billed(calculator, space):
    breakdown = calculator.compute(space, 3.0, 1.0)
    assert breakdown.base_cost == 9000
    assert breakdown.overtime_hours == 0
    assert breakdown.overtime_cost == 0
    assert breakdown.total_cost == 9000


def test_tier_follows_reserved_not_actual_duration(calculator, space):
    # Reserved 5h -> half-day tier, even if the user stays 9h
    breakdown = calculator.compute(space, 5.0, 9.0)
    assert breakdown.tier == TIER_HALF_DAY
    assert breakdown.base_cost == 10000
    assert breakdown.overtime_hours == 4.0
    assert breakdown.overtime_cost == 12000
    assert breakdown.total_cost == 22000


def test_full_day_tier(calculator, space):
    breakdown = calculator.compute(space, 10.0, 10.0)
    assert breakdown.tier == TIER_FULL_DAY
    assert breakdown.base_cost == 18000


def test_tier_boundaries_are_inclusive(calculator, space):
    assert calculator.compute(space, 4.0, 4.0).tier == TIER_HOURLY
    assert calculator.compute(space, 8.0, 8.0).tier == TIER_HALF_DAY


def test_missing_tier_price_falls_back_to_hourly(calculator):
    focus = Space(id=3, name='Focus Room', capacity=2, price_hour=1500)
    breakdown = calculator.compute(focus, 6.0, 6.0)
    assert breakdown.tier == TIER_HOURLY
    assert breakdown.base_cost == 9000


def test_degenerate_duration_is_a_warning(calculator, space):
    breakdown = calculator.compute(space, 2.0, -0.05)
    assert DEGENERATE_DURATION in breakdown.warnings
    assert breakdown.overtime_cost == 0
    assert breakdown.base_cost == 6000
    assert breakdown.total_cost >= 0

    zero = calculator.compute(space, 0, 1.0)
    assert DEGENERATE_DURATION in zero.warnings
    assert zero.tier is None
    assert zero.base_cost == 0


def test_invalid_thresholds_rejected():
    with pytest.raises(ValueError):
        BillingCalculator(half_day_hours=8, full_day_hours=4)

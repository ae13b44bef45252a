import logging
from dataclasses import dataclass, field, asdict
from typing import List

from occupancy.errors import DEGENERATE_DURATION

logger = logging.getLogger(__name__)

TIER_HOURLY = 'hourly'
TIER_HALF_DAY = 'half_day'
TIER_FULL_DAY = 'full_day'


@dataclass
class CostBreakdown:
    reserved_hours: float
    actual_hours: float
    overtime_hours: float
    base_cost: float
    overtime_cost: float
    total_cost: float
    tier: str = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class BillingCalculator:
    """
    Prices a session from the space's tariffs.

    The tier comes from the reserved duration, not the occupied one: booked
    time is billed even if unused, and anything beyond it is overtime at the
    hourly rate.
    """

    def __init__(self, half_day_hours: float = 4, full_day_hours: float = 8):
        if half_day_hours <= 0 or full_day_hours < half_day_hours:
            raise ValueError("Tier thresholds must satisfy 0 < half_day <= full_day.")
        self.half_day_hours = half_day_hours
        self.full_day_hours = full_day_hours

    def base_cost(self, space, reserved_hours: float):
        if reserved_hours <= self.half_day_hours:
            return TIER_HOURLY, space.price_hour * reserved_hours
        if reserved_hours <= self.full_day_hours:
            if space.price_half_day is not None:
                return TIER_HALF_DAY, space.price_half_day
            return TIER_HOURLY, space.price_hour * reserved_hours
        if space.price_full_day is not None:
            return TIER_FULL_DAY, space.price_full_day
        return TIER_HOURLY, space.price_hour * reserved_hours

    def compute(self, space, reserved_hours: float, actual_hours: float) -> CostBreakdown:
        reserved_hours = round(reserved_hours or 0, 2)
        actual_hours = round(actual_hours or 0, 2)
        warnings = []
        tier = None
        base = 0.0

        if reserved_hours <= 0:
            warnings.append(DEGENERATE_DURATION)
            logger.warning("Degenerate reserved duration %.2fh for space %s", reserved_hours, space.id)
        else:
            tier, base = self.base_cost(space, reserved_hours)

        if actual_hours <= 0:
            if DEGENERATE_DURATION not in warnings:
                warnings.append(DEGENERATE_DURATION)
            logger.warning("Degenerate actual duration %.2fh for space %s", actual_hours, space.id)
            overtime_hours = 0.0
        else:
            overtime_hours = round(max(0.0, actual_hours - max(reserved_hours, 0.0)), 2)

        overtime_cost = round(overtime_hours * space.price_hour, 2)
        base = round(max(base, 0.0), 2)

        return CostBreakdown(
            reserved_hours=reserved_hours,
            actual_hours=max(actual_hours, 0.0),
            overtime_hours=overtime_hours,
            base_cost=base,
            overtime_cost=max(overtime_cost, 0.0),
            total_cost=round(base + max(overtime_cost, 0.0), 2),
            tier=tier,
            warnings=warnings,
        )

"""Interval Policy

Maps ``(level, difficulty factor, previous interval, rating)`` to the next
level, difficulty factor and interval. Pure: no clock, no I/O.

Default curve:

    level 0-1   hard bucket     1-2 days
    level 2     medium bucket   3 days
    level 3-5   easy bucket     4, 8, 16 days
    level > 5   16 * df ** (level - 5), capped

Again drops two levels and tightens the difficulty factor, Hard holds the
level, Good climbs one, Easy climbs two and eases the factor.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

from core.logging import srs_logger
from engines.ratings import Rating

log = srs_logger()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of applying a rating."""
    new_level: int
    new_difficulty_factor: float
    new_interval_days: int
    resets_streak: bool


@dataclass(frozen=True, slots=True)
class PolicyConfig:
    """Tunable constants of the default curve."""
    bucket_base_days: tuple[int, ...] = (1, 2, 3, 4, 8, 16)
    min_difficulty_factor: float = 1.3
    default_difficulty_factor: float = 2.5
    max_interval_days: int = 365
    again_level_penalty: int = 2
    again_factor_penalty: float = 0.2
    hard_factor_penalty: float = 0.05
    hard_interval_multiplier: float = 1.2
    easy_factor_bonus: float = 0.15
    easy_interval_multiplier: float = 1.3
    good_level_step: int = 1
    easy_level_step: int = 2


class IntervalPolicy(Protocol):
    """Replaceable scheduling curve."""

    def transition(
        self,
        level: int,
        difficulty_factor: float,
        previous_interval_days: int | None,
        rating: Rating,
    ) -> Transition: ...

    def base_interval(self, level: int, difficulty_factor: float) -> int: ...


@dataclass(frozen=True, slots=True)
class DefaultIntervalPolicy:
    """Leveled interval growth with an SM-2 style easing factor."""
    config: PolicyConfig = field(default_factory=PolicyConfig)

    def base_interval(self, level: int, difficulty_factor: float) -> int:
        """Base interval in days for a level's bucket."""
        bases = self.config.bucket_base_days
        level = max(0, level)
        if level < len(bases):
            return bases[level]
        top = bases[-1]
        extra = level - (len(bases) - 1)
        # Geometric growth saturates quickly; stop multiplying once over the cap
        days = float(top)
        for _ in range(extra):
            days *= difficulty_factor
            if days >= self.config.max_interval_days:
                break
        return self._clamp(round_half_up(days))

    def transition(
        self,
        level: int,
        difficulty_factor: float,
        previous_interval_days: int | None,
        rating: Rating,
    ) -> Transition:
        cfg = self.config
        if previous_interval_days is None:
            previous_interval_days = self.base_interval(level, difficulty_factor)

        match rating:
            case Rating.AGAIN:
                new_level = max(0, level - cfg.again_level_penalty)
                new_df = max(cfg.min_difficulty_factor, difficulty_factor - cfg.again_factor_penalty)
                interval = 1
            case Rating.HARD:
                new_level = level
                new_df = max(cfg.min_difficulty_factor, difficulty_factor - cfg.hard_factor_penalty)
                interval = max(1, round_half_up(previous_interval_days * cfg.hard_interval_multiplier))
            case Rating.GOOD:
                new_level = level + cfg.good_level_step
                new_df = difficulty_factor
                if previous_interval_days > 0:
                    interval = round_half_up(previous_interval_days * difficulty_factor)
                else:
                    interval = self.base_interval(new_level, difficulty_factor)
            case Rating.EASY:
                new_level = level + cfg.easy_level_step
                new_df = difficulty_factor + cfg.easy_factor_bonus
                interval = round_half_up(
                    previous_interval_days * difficulty_factor * cfg.easy_interval_multiplier
                )

        result = Transition(
            new_level=new_level,
            new_difficulty_factor=round(new_df, 4),
            new_interval_days=self._clamp(interval),
            resets_streak=rating is Rating.AGAIN,
        )
        log.debug(
            "interval_computed",
            rating=rating.name,
            level=level,
            new_level=result.new_level,
            new_interval=result.new_interval_days,
            new_df=result.new_difficulty_factor,
        )
        return result

    def _clamp(self, days: int) -> int:
        return min(self.config.max_interval_days, max(1, days))

"""Review ratings.

A closed set of four outcomes. Anything else arriving from a caller is
rejected at the boundary by ``parse_rating``.
"""
from enum import IntEnum

from core.errors import AppError, Ok, Result, invalid_format, out_of_range


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def is_correct(self) -> bool:
        """Every rating except Again counts as a successful recall."""
        return self is not Rating.AGAIN


def parse_rating(value: object) -> Result[Rating, AppError]:
    """Coerce a caller-supplied rating into a Rating.

    Accepts a Rating, its case-insensitive name ("good"), or its integer
    value 1-4.
    """
    if isinstance(value, Rating):
        return Ok(value)
    if isinstance(value, bool):
        return invalid_format("rating", "one of again/hard/good/easy", str(value), origin="ratings")
    if isinstance(value, int):
        if Rating.AGAIN <= value <= Rating.EASY:
            return Ok(Rating(value))
        return out_of_range("rating", value, int(Rating.AGAIN), int(Rating.EASY), origin="ratings")
    if isinstance(value, str):
        name = value.strip().upper()
        if name in Rating.__members__:
            return Ok(Rating[name])
        if name.isdigit():
            return parse_rating(int(name))
    return invalid_format("rating", "one of again/hard/good/easy", str(value), origin="ratings")

import math
from typing import Iterable, Iterator, List, Optional, Tuple

# Subtracted from every range upper bound so a value sitting exactly on a
# breakpoint matches only one media rule.
RANGE_EPSILON = 0.00001

NumericRange = Tuple[Optional[float], Optional[float]]


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def round_to_base(value: float, base: float = 1) -> float:
    if abs(base) >= 1:
        return _round_half_up(value / base) * base
    # 1234 * 0.0001 loses precision, 1234 / 10000 doesn't
    counter_base = 1 / base
    return _round_half_up(value * counter_base) / counter_base


def exponential_sequence(
    minimum: float,
    maximum: float,
    multiplier: float,
    round_base: float = 1,
) -> Iterator[float]:
    """
    Yields min * multiplier^i rounded to round_base, until a value exceeds max.
    Consecutive values that collapse to the same number after rounding are
    yielded once.
    """
    if minimum <= 0:
        raise ValueError("exponential sequence requires a positive minimum")
    if multiplier <= 1:
        raise ValueError("exponential sequence requires a multiplier above 1")

    previous: Optional[float] = None
    i = 0
    while True:
        value = round_to_base(minimum * multiplier ** i, round_base)
        if value > maximum:
            return
        if value != previous:
            previous = value
            yield value
        i += 1


def breakpoint_ranges(breakpoints: Iterable[float]) -> List[NumericRange]:
    """
    Splits the number line at the breakpoints: N breakpoints give N + 1 ranges,
    the first unbounded below and the last unbounded above.
    """
    ranges: List[NumericRange] = []
    previous: Optional[float] = None
    for point in breakpoints:
        ranges.append((previous, point))
        previous = point
    if previous is not None:
        ranges.append((previous, None))
    return ranges


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def range_payload(minimum: Optional[float], maximum: Optional[float]) -> str:
    return ",".join("" if v is None else format_number(v) for v in (minimum, maximum))

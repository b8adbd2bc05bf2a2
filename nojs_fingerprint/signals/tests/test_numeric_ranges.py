import pytest

from nojs_fingerprint.signals.numeric_ranges import (
    breakpoint_ranges,
    exponential_sequence,
    format_number,
    range_payload,
    round_to_base,
)


# --- Helpers ---

def _assert_well_formed(minimum, maximum, multiplier, round_base):
    points = list(exponential_sequence(minimum, maximum, multiplier, round_base))
    assert points, "expected at least one breakpoint"
    assert all(a < b for a, b in zip(points, points[1:]))
    assert points[-1] <= maximum

    # The first generated value past the last breakpoint must be out of bounds
    i = 0
    while round_to_base(minimum * multiplier ** i, round_base) <= points[-1]:
        i += 1
    assert round_to_base(minimum * multiplier ** i, round_base) > maximum


# --- Tests ---

def test_round_to_base_whole_bases():
    assert round_to_base(387.2, 10) == 390
    assert round_to_base(384.9, 10) == 380
    assert round_to_base(7.4) == 7


def test_round_to_base_rounds_half_up():
    assert round_to_base(2.5) == 3
    assert round_to_base(45, 10) == 50


def test_round_to_base_fractional_base_keeps_precision():
    assert round_to_base(0.1234, 0.001) == 0.123
    assert round_to_base(0.66125, 0.1) == 0.7


def test_screen_sequence_starts_with_expected_breakpoints():
    points = list(exponential_sequence(320, 2700, 1.1, 10))
    assert points[:4] == [320, 350, 390, 430]
    assert points[-1] <= 2700


def test_sequence_deduplicates_values_equal_after_rounding():
    assert list(exponential_sequence(1, 3, 1.1)) == [1, 2, 3]


@pytest.mark.parametrize(
    "minimum,maximum,multiplier,round_base",
    [
        (320, 2700, 1.1, 10),
        (0.5, 5, 1.15, 0.1),
        (1, 1000, 2, 1),
        (3, 4, 1.01, 1),
        (10, 10, 3, 1),
    ],
)
def test_sequence_is_strictly_increasing_and_bounded(minimum, maximum, multiplier, round_base):
    _assert_well_formed(minimum, maximum, multiplier, round_base)


def test_sequence_is_empty_when_minimum_exceeds_maximum():
    assert list(exponential_sequence(100, 10, 2)) == []


@pytest.mark.parametrize("minimum,multiplier", [(0, 2), (-1, 2), (1, 1), (1, 0.5)])
def test_sequence_rejects_parameters_that_never_terminate(minimum, multiplier):
    with pytest.raises(ValueError):
        list(exponential_sequence(minimum, 10, multiplier))


def test_breakpoints_define_one_more_range_than_points():
    assert breakpoint_ranges([1, 2]) == [(None, 1), (1, 2), (2, None)]
    assert breakpoint_ranges([]) == []


def test_range_payload_leaves_unbounded_side_empty():
    assert range_payload(None, 320) == ",320"
    assert range_payload(320.0, 350) == "320,350"
    assert range_payload(0.6, None) == "0.6,"


def test_format_number_drops_integral_fraction():
    assert format_number(1408.0) == "1408"
    assert format_number(1.15) == "1.15"

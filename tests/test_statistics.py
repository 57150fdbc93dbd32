"""
Tests for the pure statistical helpers.
"""

import math

import pytest

from perfwatch.core.statistics import mean, percentile, population_stddev, quartiles


def test_mean():
    assert mean([1.0, 2.0, 3.0, 4.0]) == 2.5


def test_mean_of_empty_sequence_raises():
    with pytest.raises(ValueError):
        mean([])


def test_population_stddev_divides_by_n():
    # Sample stddev would be sqrt(8/2) = 2.0
    assert population_stddev([10.0, 12.0, 14.0]) == pytest.approx(math.sqrt(8 / 3))


def test_population_stddev_of_constant_window_is_zero():
    assert population_stddev([5.0, 5.0, 5.0]) == 0.0


def test_percentile_linear_interpolation():
    assert percentile([1, 2, 3, 4, 5], 50) == 3.0
    assert percentile([1, 2, 3, 4, 5], 25) == 2.0
    assert percentile([1, 2, 3, 4], 50) == 2.5
    assert percentile([7], 90) == 7.0
    assert percentile([], 50) is None


def test_percentile_clamps_out_of_range():
    assert percentile([1, 2, 3], 150) == 3.0
    assert percentile([1, 2, 3], -5) == 1.0


def test_quartiles_sorts_input():
    assert quartiles([9, 1, 8, 2, 7, 3, 6, 4, 5]) == (3.0, 5.0, 7.0)

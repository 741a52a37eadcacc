"""Test cases for the pure grading helpers."""

import pytest

from gradebook.grading.primitives import (
    LETTER_GRADES, calculate_letter_grade, calculate_percentage, grade_distribution,
    mean, median, population_stddev, round_score,
)


class TestLetterGrades:
    """Test cases for the letter-grade bands."""

    @pytest.mark.parametrize("percentage,expected", [
        (100, "A+"), (95, "A+"), (94.99, "A"),
        (90, "A"), (89.99, "A-"), (89.9, "A-"),
        (87, "A-"), (86.99, "B+"),
        (83, "B+"), (82.99, "B"),
        (80, "B"), (79.99, "B-"),
        (77, "B-"), (76.99, "C+"),
        (73, "C+"), (72.99, "C"),
        (70, "C"), (69.99, "C-"),
        (67, "C-"), (66.99, "D+"),
        (63, "D+"), (62.99, "D"),
        (60, "D"), (59.99, "D-"),
        (57, "D-"), (56.99, "F"),
        (0, "F"),
    ])
    def test_band_boundaries(self, percentage, expected):
        """Test each cut point and the value just below it."""
        assert calculate_letter_grade(percentage) == expected

    def test_thirteen_bands_in_order(self):
        """Test the fixed band order used by distributions."""
        assert LETTER_GRADES == ("A+", "A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D+", "D", "D-", "F")


class TestPercentages:
    """Test cases for percentage and rounding helpers."""

    def test_percentage(self):
        """Test a plain percentage."""
        assert calculate_percentage(45, 50) == 90

    def test_percentage_of_zero_max(self):
        """Test that a zero max score yields 0 rather than an error."""
        assert calculate_percentage(10, 0) == 0.0

    def test_round_half_up(self):
        """Test rounding half away from zero at two places."""
        assert round_score(2.675) == 2.68
        assert round_score(56.00000000000001) == 56.0
        assert round_score(1.005) == 1.01


class TestStatistics:
    """Test cases for aggregate statistics."""

    def test_mean_and_stddev(self):
        """Test population mean and standard deviation."""
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        assert mean(values) == 5
        assert population_stddev(values) == 2

    def test_empty_inputs(self):
        """Test that empty inputs do not raise."""
        assert mean([]) == 0.0
        assert population_stddev([]) == 0.0
        assert median([]) is None

    def test_median(self):
        """Test odd and even length medians."""
        assert median([3, 1, 2]) == 2
        assert median([4, 1, 3, 2]) == 2.5

    def test_distribution_counts_every_band(self):
        """Test that the distribution lists all bands, including empty ones."""
        distribution = grade_distribution([96, 91, 91, 50])
        assert list(distribution) == list(LETTER_GRADES)
        assert distribution["A+"] == 1
        assert distribution["A"] == 2
        assert distribution["F"] == 1
        assert sum(distribution.values()) == 4

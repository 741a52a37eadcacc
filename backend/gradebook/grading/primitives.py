"""Pure grading helpers: rounding, percentages, letter grades and summary statistics."""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

# Lower bound (inclusive) of each letter-grade band, highest first
LETTER_GRADE_BANDS = (
    (95, "A+"),
    (90, "A"),
    (87, "A-"),
    (83, "B+"),
    (80, "B"),
    (77, "B-"),
    (73, "C+"),
    (70, "C"),
    (67, "C-"),
    (63, "D+"),
    (60, "D"),
    (57, "D-"),
)
FAILING_GRADE = "F"
LETTER_GRADES = tuple(letter for _, letter in LETTER_GRADE_BANDS) + (FAILING_GRADE,)

PASSING_PERCENTAGE = 60
SCORE_PRECISION = 2


def round_score(value: float, places: int = SCORE_PRECISION) -> float:
    """Round half away from zero to the grading precision."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def calculate_percentage(score: float, max_score: float) -> float:
    """Score as a percentage of max_score; 0 when max_score is 0."""
    if not max_score:
        return 0.0
    return score / max_score * 100


def calculate_letter_grade(percentage: float) -> str:
    """Map a percentage to one of the 13 letter-grade bands."""
    for lower_bound, letter in LETTER_GRADE_BANDS:
        if percentage >= lower_bound:
            return letter
    return FAILING_GRADE


def empty_distribution() -> Dict[str, int]:
    return {letter: 0 for letter in LETTER_GRADES}


def grade_distribution(percentages: Iterable[float]) -> Dict[str, int]:
    """Count percentages per letter-grade band, bands in fixed order."""
    distribution = empty_distribution()
    for percentage in percentages:
        distribution[calculate_letter_grade(percentage)] += 1
    return distribution


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def population_stddev(values: Sequence[float]) -> float:
    """Standard deviation over the whole population (divide by N)."""
    if not values:
        return 0.0
    centre = mean(values)
    return math.sqrt(math.fsum((value - centre) ** 2 for value in values) / len(values))


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    ordered: List[float] = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2

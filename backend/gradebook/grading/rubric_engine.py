"""Rubric scoring: per-criterion points to a percentage and letter grade."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError, from_pydantic
from .primitives import calculate_letter_grade, calculate_percentage, round_score

logger = logging.getLogger(__name__)


class RubricLevel(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    points: float = Field(..., ge=0)


class RubricCriterion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    name: str = Field(..., min_length=1)
    description: str = ""
    max_points: float = Field(..., gt=0, alias="maxPoints")
    weight: float = Field(1.0, ge=0, le=2)
    levels: List[RubricLevel] = Field(default_factory=list)

    @model_validator(mode="after")
    def levels_within_max(self):
        for level in self.levels:
            if level.points > self.max_points:
                raise ValueError(f"Level '{level.name}' exceeds the criterion's maxPoints")
        return self

    @property
    def key(self) -> str:
        """Identifier used in a scores mapping: the id when present, else the name."""
        return str(self.id) if self.id is not None else self.name


class CriterionBreakdown(BaseModel):
    name: str
    score: float
    max_points: float
    weight: float
    percentage: float


class RubricResult(BaseModel):
    rubric_id: Optional[int] = None
    total_score: float
    max_score: float
    percentage: float
    letter_grade: str
    weighted: bool = False
    breakdown: Dict[str, CriterionBreakdown]


_criteria_adapter = TypeAdapter(List[RubricCriterion])


def validate_criteria(criteria: Any) -> List[RubricCriterion]:
    """Parse and validate a criteria list."""
    if not isinstance(criteria, list) or not criteria:
        raise ValidationError("Rubric must have at least one criterion", field="criteria")
    try:
        parsed = _criteria_adapter.validate_python(criteria)
    except PydanticValidationError as e:
        raise from_pydantic(e, prefix="criteria.")
    keys = [criterion.key for criterion in parsed]
    if len(set(keys)) != len(keys):
        raise ValidationError("Rubric criteria must have unique ids or names", field="criteria")
    return parsed


def _rubric_parts(rubric) -> tuple:
    if rubric is None:
        raise ValidationError("Invalid rubric provided", field="rubric")
    if isinstance(rubric, Mapping):
        return rubric.get("id"), rubric.get("criteria")
    return getattr(rubric, "id", None), getattr(rubric, "criteria", None)


def _checked_scores(criteria: List[RubricCriterion], scores: Mapping[str, Any]) -> Dict[str, float]:
    """Look up each criterion's score, rejecting anything outside [0, maxPoints]."""
    scores = {str(key): value for key, value in (scores or {}).items()}
    known = {criterion.key for criterion in criteria}
    unknown = sorted(set(scores) - known)
    if unknown:
        raise ValidationError(f"Unknown rubric criteria: {', '.join(unknown)}", field="scores")

    checked = {}
    for criterion in criteria:
        score = scores.get(criterion.key, 0)
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValidationError(
                f"Score for criterion '{criterion.name}' must be a number", field=f"scores.{criterion.key}"
            )
        if score < 0:
            raise ValidationError(
                f"Score {score} for criterion '{criterion.name}' must not be negative",
                field=f"scores.{criterion.key}",
            )
        if score > criterion.max_points:
            raise ValidationError(
                f"Score {score} exceeds maximum {criterion.max_points} for criterion: {criterion.name}",
                field=f"scores.{criterion.key}",
            )
        checked[criterion.key] = float(score)
    return checked


def _result(rubric_id, criteria, checked, weighted: bool) -> RubricResult:
    total_score = 0.0
    max_score = 0.0
    breakdown = {}
    for criterion in criteria:
        score = checked[criterion.key]
        factor = criterion.weight if weighted else 1.0
        total_score += score * factor
        max_score += criterion.max_points * factor
        breakdown[criterion.key] = CriterionBreakdown(
            name=criterion.name,
            score=score,
            max_points=criterion.max_points,
            weight=criterion.weight,
            percentage=round_score(calculate_percentage(score, criterion.max_points)),
        )

    percentage = calculate_percentage(total_score, max_score)
    return RubricResult(
        rubric_id=rubric_id,
        total_score=round_score(total_score),
        max_score=round_score(max_score),
        percentage=round_score(percentage),
        letter_grade=calculate_letter_grade(percentage),
        weighted=weighted,
        breakdown=breakdown,
    )


def calculate_rubric_grade(rubric, scores: Mapping[str, Any]) -> RubricResult:
    """
    Score a rubric by summing raw criterion points.

    Criterion weights are carried into the breakdown but not applied; use
    calculate_weighted_rubric_grade for weighted scoring.

    Raises:
        ValidationError: if the rubric is malformed or any score is outside
            [0, maxPoints] for its criterion.
    """
    rubric_id, raw_criteria = _rubric_parts(rubric)
    criteria = validate_criteria(raw_criteria)
    checked = _checked_scores(criteria, scores)
    result = _result(rubric_id, criteria, checked, weighted=False)
    logger.debug(f"Rubric {rubric_id} scored {result.total_score}/{result.max_score}")
    return result


def calculate_weighted_rubric_grade(rubric, scores: Mapping[str, Any]) -> RubricResult:
    """Score a rubric with each criterion's points multiplied by its weight."""
    rubric_id, raw_criteria = _rubric_parts(rubric)
    criteria = validate_criteria(raw_criteria)
    checked = _checked_scores(criteria, scores)
    return _result(rubric_id, criteria, checked, weighted=True)

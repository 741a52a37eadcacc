"""
Quiz question definitions.

Questions arrive as loosely typed JSON and are parsed into a tagged union
keyed on ``type``. Every variant carries only the fields it needs and is
validated completely here, at definition time, so grading never has to
second-guess a stored answer key.
"""

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..models.enums import QuestionType
from .exceptions import ValidationError, from_pydantic

REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


def compile_flags(flags: str) -> int:
    value = 0
    for flag in flags:
        if flag not in REGEX_FLAGS:
            raise ValueError(f"Unsupported regex flag '{flag}'")
        value |= REGEX_FLAGS[flag]
    return value


class ContainsRule(BaseModel):
    type: Literal["contains"]
    value: str = Field(..., min_length=1)
    credit_percentage: float = Field(..., gt=0, le=100)


class LengthRule(BaseModel):
    type: Literal["length"]
    min_length: int = Field(0, ge=0)
    max_length: int = Field(..., ge=0)
    credit_percentage: float = Field(..., gt=0, le=100)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_length > self.max_length:
            raise ValueError("min_length must not exceed max_length")
        return self


class RegexRule(BaseModel):
    type: Literal["regex"]
    pattern: str = Field(..., min_length=1)
    flags: str = "i"
    credit_percentage: float = Field(..., gt=0, le=100)

    @model_validator(mode="after")
    def check_pattern(self):
        try:
            re.compile(self.pattern, compile_flags(self.flags))
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}")
        return self


PartialCreditRule = Annotated[Union[ContainsRule, LengthRule, RegexRule], Field(discriminator="type")]


class _Question(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str = Field(..., min_length=1)
    points: float = Field(..., gt=0)


class MultipleChoiceQuestion(_Question):
    type: Literal["multiple_choice"]
    options: List[str] = Field(..., min_length=2)
    correct_answer: str = Field(..., min_length=1)
    answer_variations: List[str] = Field(default_factory=list)
    case_sensitive: bool = False

    @field_validator("options")
    @classmethod
    def options_unique(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("Multiple choice question has duplicate options")
        return v

    @model_validator(mode="after")
    def correct_answer_is_option(self):
        if self.correct_answer not in self.options:
            raise ValueError("Correct answer must be one of the provided options")
        return self


class TrueFalseQuestion(_Question):
    type: Literal["true_false"]
    correct_answer: bool


class ShortAnswerQuestion(_Question):
    type: Literal["short_answer"]
    correct_answer: str
    acceptable_answers: List[str] = Field(default_factory=list)
    case_sensitive: bool = False
    partial_credit_rules: List[PartialCreditRule] = Field(default_factory=list)

    @field_validator("correct_answer")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Short answer question must have a non-empty correct answer")
        return v


class EssayQuestion(_Question):
    type: Literal["essay"]


QuizQuestion = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, ShortAnswerQuestion, EssayQuestion],
    Field(discriminator="type"),
]

_questions_adapter = TypeAdapter(List[QuizQuestion])


class QuizSummary(BaseModel):
    question_count: int
    total_points: float
    objective_points: float


def parse_questions(raw: Any) -> List[QuizQuestion]:
    """Validate a raw question list, raising the engine's ValidationError."""
    if not isinstance(raw, list):
        raise ValidationError("Quiz questions must be an array", field="questions")
    if not raw:
        raise ValidationError("Quiz must have at least one question", field="questions")
    try:
        return _questions_adapter.validate_python(raw)
    except PydanticValidationError as e:
        raise from_pydantic(e, prefix="questions.")


def summarize(questions: List[QuizQuestion]) -> QuizSummary:
    return QuizSummary(
        question_count=len(questions),
        total_points=sum(q.points for q in questions),
        objective_points=sum(q.points for q in questions if QuestionType(q.type).is_objective),
    )


def rule_fields(index: int, question: QuizQuestion) -> Optional[Dict[str, Any]]:
    """Column values of the AutomatedGradingRule for a question, or None for manual questions."""
    if isinstance(question, EssayQuestion):
        return None

    fields: Dict[str, Any] = {
        "question_index": index,
        "question_type": QuestionType(question.type),
        "points": question.points,
        "variations": [],
        "case_sensitive": False,
        "partial_credit_rules": None,
    }
    if isinstance(question, MultipleChoiceQuestion):
        fields.update(
            correct_answer=question.correct_answer,
            variations=list(question.answer_variations),
            case_sensitive=question.case_sensitive,
        )
    elif isinstance(question, TrueFalseQuestion):
        fields["correct_answer"] = "true" if question.correct_answer else "false"
    else:
        fields.update(
            correct_answer=question.correct_answer,
            variations=list(question.acceptable_answers),
            case_sensitive=question.case_sensitive,
            partial_credit_rules=[rule.model_dump() for rule in question.partial_credit_rules] or None,
        )
    return fields

"""
Viral Grade Calculation
=======================

Maps the three sub-scores returned by the analysis model to a letter grade on
the American scale. Weights: hook 40%, visual 35%, execution 25%.
"""

import math
from dataclasses import dataclass
from typing import Any, Union

Number = Union[int, float]

HOOK_WEIGHT = 0.40
VISUAL_WEIGHT = 0.35
EXECUTION_WEIGHT = 0.25

DEFAULT_SUB_SCORE = 5

# (minimum percentage, grade, display color), descending
GRADE_BREAKPOINTS = (
    (97, "A+", "bg-gradient-to-br from-green-400 to-emerald-500 text-white"),
    (93, "A", "bg-gradient-to-br from-green-400 to-emerald-500 text-white"),
    (90, "A-", "bg-gradient-to-br from-green-500 to-teal-500 text-white"),
    (87, "B+", "bg-gradient-to-br from-blue-400 to-cyan-500 text-white"),
    (83, "B", "bg-gradient-to-br from-blue-500 to-indigo-500 text-white"),
    (80, "B-", "bg-gradient-to-br from-indigo-400 to-purple-500 text-white"),
    (77, "C+", "bg-gradient-to-br from-yellow-400 to-amber-500 text-white"),
    (73, "C", "bg-gradient-to-br from-yellow-500 to-orange-500 text-white"),
    (70, "C-", "bg-gradient-to-br from-orange-400 to-orange-500 text-white"),
    (67, "D+", "bg-gradient-to-br from-orange-500 to-red-400 text-white"),
    (63, "D", "bg-gradient-to-br from-orange-500 to-red-500 text-white"),
    (60, "D-", "bg-gradient-to-br from-red-400 to-red-500 text-white"),
)
FAILING_GRADE = ("F", "bg-gradient-to-br from-red-500 to-red-600 text-white")


@dataclass(frozen=True)
class GradeResult:
    grade: str
    color: str
    potential: float
    percentage: float


def weighted_score(hook: Number, visual: Number, execution: Number) -> float:
    return hook * HOOK_WEIGHT + visual * VISUAL_WEIGHT + execution * EXECUTION_WEIGHT


def calculate_grade(hook: Number, visual: Number, execution: Number) -> GradeResult:
    """Grade a video from its hook, visual and execution scores (each 1-10)."""
    avg = weighted_score(hook, visual, execution)
    # 6.0 * 10 must compare as exactly 60, not 59.99999999999999
    percentage = round(avg * 10, 6)
    potential = math.floor(percentage + 0.5) / 10

    for threshold, grade, color in GRADE_BREAKPOINTS:
        if percentage >= threshold:
            return GradeResult(grade=grade, color=color, potential=potential, percentage=percentage)

    grade, color = FAILING_GRADE
    return GradeResult(grade=grade, color=color, potential=potential, percentage=percentage)


def coerce_sub_score(*candidates: Any) -> Number:
    """First usable score among the candidates, else the default of 5.

    Zero, missing and non-numeric values are all treated as unusable.
    """
    for value in candidates:
        if isinstance(value, bool):
            continue
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                continue
        if isinstance(value, (int, float)) and value and not math.isnan(value):
            return value
    return DEFAULT_SUB_SCORE

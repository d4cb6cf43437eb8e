"""Continuous-assessment scoring and letter grades.

All functions are total: any numeric input (including NaN and infinities)
produces a value.
"""

import math
from dataclasses import dataclass, field
from typing import Mapping

DEFAULT_MAXIMUMS: dict[str, int] = {
    "ca1": 20,
    "ca2": 20,
    "assignment": 10,
    "exam": 50,
}

GRADE_BANDS = ("A", "B", "C", "D", "F")

# Checked top-down; the first band whose minimum the total reaches wins.
GRADE_BOUNDARIES: tuple[tuple[int, str, str], ...] = (
    (90, "A", "Outstanding performance"),
    (80, "B", "Very good work"),
    (70, "C", "Good effort"),
    (60, "D", "Fair - room for growth"),
    (0, "F", "Requires urgent attention"),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_component(raw: float, maximum: float) -> int:
    """Clamp a raw component score into ``[0, maximum]``.

    @param raw - Score as entered
    @param maximum - Component ceiling
    @returns Whole-number score; non-finite input counts as 0
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    if value > maximum:
        return int(maximum)
    return _round_half_up(value)


def grand_total(
    scores: Mapping[str, float], maximums: Mapping[str, int] | None = None
) -> int:
    """Sum of clamped components, capped at 100."""
    limits = maximums or DEFAULT_MAXIMUMS
    total = sum(
        clamp_component(scores.get(component, 0), maximum)
        for component, maximum in limits.items()
    )
    return min(100, total)


def grade_from_total(total: float) -> str:
    """Map a total score onto a letter grade."""
    try:
        value = float(total)
    except (TypeError, ValueError):
        value = 0.0
    safe_total = max(0, _round_half_up(value)) if math.isfinite(value) else 0
    for minimum, grade, _ in GRADE_BOUNDARIES:
        if safe_total >= minimum:
            return grade
    return "F"


def remark_for_grade(grade: str) -> str:
    """Standard remark for a grade band, or an empty string."""
    normalized = grade.strip().upper()
    for _, band, remark in GRADE_BOUNDARIES:
        if band == normalized:
            return remark
    return ""


@dataclass
class GradeDistribution:
    """Counts per grade band for a set of totals."""

    distribution: dict[str, int] = field(
        default_factory=lambda: {band: 0 for band in GRADE_BANDS}
    )
    total: int = 0
    passes: int = 0
    pass_rate: int = 0


def summarize_distribution(totals: list[float]) -> GradeDistribution:
    """Count grades and pass rate (anything but F passes)."""
    summary = GradeDistribution()
    for score in totals:
        summary.distribution[grade_from_total(score)] += 1
    summary.total = len(totals)
    if summary.total:
        summary.passes = summary.total - summary.distribution["F"]
        summary.pass_rate = _round_half_up(summary.passes / summary.total * 100)
    return summary


@dataclass(frozen=True)
class ScoreBreakdown:
    """Clamped components with their total and grade."""

    ca1: int
    ca2: int
    assignment: int
    exam: int
    total: int
    grade: str
    remark: str


class GradeCalculator:
    """Applies a fixed set of component maximums."""

    def __init__(self, maximums: Mapping[str, int] | None = None):
        """Initialize calculator.

        Args:
            maximums: Ceiling per component (ca1, ca2, assignment, exam)
        """
        self.maximums = dict(DEFAULT_MAXIMUMS)
        if maximums:
            self.maximums.update(maximums)

    def out_of_bounds(self, scores: Mapping[str, float]) -> list[str]:
        """Names of components whose raw score lies outside ``[0, max]``."""
        invalid = []
        for component, maximum in self.maximums.items():
            raw = scores.get(component, 0)
            try:
                value = float(raw)
            except (TypeError, ValueError):
                invalid.append(component)
                continue
            if not math.isfinite(value) or value < 0 or value > maximum:
                invalid.append(component)
        return invalid

    def breakdown(self, scores: Mapping[str, float]) -> ScoreBreakdown:
        """Clamp each component, total them and grade the total."""
        clamped = {
            component: clamp_component(scores.get(component, 0), maximum)
            for component, maximum in self.maximums.items()
        }
        total = min(100, sum(clamped.values()))
        grade = grade_from_total(total)
        return ScoreBreakdown(
            ca1=clamped["ca1"],
            ca2=clamped["ca2"],
            assignment=clamped["assignment"],
            exam=clamped["exam"],
            total=total,
            grade=grade,
            remark=remark_for_grade(grade),
        )

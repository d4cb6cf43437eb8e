"""Grading utility module."""

from school_portal.services.grading.calculator import (
    DEFAULT_MAXIMUMS,
    GRADE_BANDS,
    GradeCalculator,
    GradeDistribution,
    ScoreBreakdown,
    clamp_component,
    grade_from_total,
    grand_total,
    remark_for_grade,
    summarize_distribution,
)

__all__ = [
    "DEFAULT_MAXIMUMS",
    "GRADE_BANDS",
    "GradeCalculator",
    "GradeDistribution",
    "ScoreBreakdown",
    "clamp_component",
    "grade_from_total",
    "grand_total",
    "remark_for_grade",
    "summarize_distribution",
]

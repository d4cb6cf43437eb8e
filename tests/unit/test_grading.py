"""Tests for score clamping and letter grades."""

import math

import pytest

from school_portal.services.grading import (
    GradeCalculator,
    clamp_component,
    grade_from_total,
    grand_total,
    remark_for_grade,
    summarize_distribution,
)


class TestClampComponent:
    """Tests for clamp_component."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (15, 15),
            (14.5, 15),
            (14.49, 14),
            (25, 20),
            (-3, 0),
            (math.nan, 0),
            (math.inf, 0),
            ("12", 12),
            ("abc", 0),
            (None, 0),
        ],
    )
    def test_clamp(self, raw, expected):
        """Scores land in [0, max] as whole numbers."""
        assert clamp_component(raw, 20) == expected


class TestTotalsAndGrades:
    """Tests for totals, grades and remarks."""

    def test_grand_total(self):
        """Components are clamped before summing."""
        scores = {"ca1": 25, "ca2": 20, "assignment": 9.5, "exam": 45}

        assert grand_total(scores) == 20 + 20 + 10 + 45

    def test_grand_total_custom_maximums(self):
        """Custom maximums replace the defaults and the total is capped."""
        assert grand_total({"exam": 150}, {"exam": 120}) == 100

    @pytest.mark.parametrize(
        "total,grade",
        [
            (100, "A"),
            (90, "A"),
            (89.5, "A"),
            (89.4, "B"),
            (80, "B"),
            (70, "C"),
            (60, "D"),
            (59, "F"),
            (-10, "F"),
            (math.nan, "F"),
        ],
    )
    def test_grade_from_total(self, total, grade):
        """Bands are checked from the top."""
        assert grade_from_total(total) == grade

    def test_remarks(self):
        """Every band has a remark; unknown grades have none."""
        assert remark_for_grade("a") == "Outstanding performance"
        assert remark_for_grade(" D ") == "Fair - room for growth"
        assert remark_for_grade("F") == "Requires urgent attention"
        assert remark_for_grade("Z") == ""


class TestDistribution:
    """Tests for summarize_distribution."""

    def test_summary(self):
        """Counts per band with a rounded pass rate."""
        summary = summarize_distribution([95, 85, 40, 72])

        assert summary.distribution == {"A": 1, "B": 1, "C": 1, "D": 0, "F": 1}
        assert summary.total == 4
        assert summary.passes == 3
        assert summary.pass_rate == 75

    def test_empty(self):
        """No totals means no passes and a zero rate."""
        summary = summarize_distribution([])

        assert summary.total == 0
        assert summary.pass_rate == 0

    def test_pass_rate_rounds_half_up(self):
        """Two passes out of three is 67 percent."""
        assert summarize_distribution([90, 90, 10]).pass_rate == 67


class TestGradeCalculator:
    """Tests for GradeCalculator."""

    def test_breakdown(self):
        """Breakdown carries clamped scores, total, grade and remark."""
        calculator = GradeCalculator()

        result = calculator.breakdown({"ca1": 18, "ca2": 20, "assignment": 9, "exam": 45})

        assert result.total == 92
        assert result.grade == "A"
        assert result.remark == "Outstanding performance"

    def test_out_of_bounds(self):
        """Components outside their range are named."""
        calculator = GradeCalculator({"exam": 60})

        invalid = calculator.out_of_bounds(
            {"ca1": 21, "ca2": -1, "assignment": 10, "exam": 55}
        )

        assert invalid == ["ca1", "ca2"]

    def test_non_finite_is_out_of_bounds(self):
        """NaN is never a valid score."""
        assert GradeCalculator().out_of_bounds({"exam": math.nan}) == ["exam"]

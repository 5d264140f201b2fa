"""
Code-Based Graders -- deterministic evaluation with exact criteria.

Use for: pass/fail checks, threshold checks, report-shape checks over a
PipelineResult or ValidationReport. Fast, cheap, reproducible.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CodeGraderResult:
    """Result from code-based grading."""

    eval_name: str
    passed: bool
    checks_passed: int = 0
    checks_total: int = 0
    failures: list[str] = field(default_factory=list)

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        line = f"[{status}] {self.eval_name}: {self.checks_passed}/{self.checks_total} checks"
        if self.failures:
            line += " -- " + "; ".join(self.failures)
        return line


class CodeGrader:
    """Deterministic grader that runs a list of check functions.

    Usage:
        grader = CodeGrader("pipeline_happy_path")
        grader.add_check("succeeded", lambda r: r.success)
        grader.add_check("converged", lambda r: r.outcome.state.value == "CONVERGED")
        result = grader.grade(pipeline_result)
        assert result.passed, result.summary()
    """

    def __init__(self, eval_name: str):
        self.eval_name = eval_name
        self._checks: list[tuple[str, Callable]] = []

    def add_check(self, name: str, check_fn: Callable[[Any], bool]) -> "CodeGrader":
        """Add a named check function. Returns self for chaining."""
        self._checks.append((name, check_fn))
        return self

    def grade(self, output: Any) -> CodeGraderResult:
        """Run all checks against the output. A raising check counts as a failure."""
        failures = []
        passed_count = 0

        for name, check_fn in self._checks:
            try:
                if check_fn(output):
                    passed_count += 1
                else:
                    failures.append(f"FAIL: {name}")
            except Exception as e:
                failures.append(f"ERROR: {name} -- {e}")

        result = CodeGraderResult(
            eval_name=self.eval_name,
            passed=len(failures) == 0,
            checks_passed=passed_count,
            checks_total=len(self._checks),
            failures=failures,
        )
        logger.debug(f"[Evals] {result.summary()}")
        return result

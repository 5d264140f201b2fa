"""
Eval graders.

- CodeGrader: deterministic named checks over a pipeline result or report
"""

from .code_grader import CodeGrader, CodeGraderResult

__all__ = ["CodeGrader", "CodeGraderResult"]

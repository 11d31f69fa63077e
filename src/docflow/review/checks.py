"""Automated pre-check run once per submission.

The check is advisory: its score and issues are stored on the review
record but never block the pipeline.  Any callable taking the document
text and returning a :class:`CheckResult` can be plugged in, e.g. a
client for an external AI review service.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from ..core.identity import Clock
from ..core.ids import count_words
from ..core.models import CheckIssue, CheckResult, IssueSeverity
from ..utils.logging import get_logger

logger = get_logger(__name__)


class Checker(Protocol):
    def __call__(self, content: str) -> CheckResult: ...


def run_check(
    checker: Optional[Checker],
    content: str,
    enabled: bool = True,
    clock: Optional[Clock] = None,
) -> CheckResult:
    """Call ``checker`` exactly once.

    A disabled or missing checker yields the empty result.  A checker
    that raises yields a zero score flagged ``failed``; the error is
    logged and never propagated, since the check must not block a
    submission.
    """
    checked_at = clock() if clock is not None else None
    if not enabled or checker is None:
        return CheckResult(score=0, issues=[], checked_at=checked_at)

    try:
        result = checker(content)
    except Exception as e:
        logger.warning(f"Pre-check failed: {e}")
        return CheckResult(score=0, issues=[], summary=None, checked_at=checked_at, failed=True)

    if result.checked_at is None and checked_at is not None:
        result = result.model_copy(update={"checked_at": checked_at})
    return result


class HeuristicChecker:
    """Rule-based stand-in for the external review service.

    Flags empty or very short documents, unresolved placeholder markers,
    overlong lines and inconsistent terminology.
    """

    MARKER_RE = re.compile(r"\b(TODO|TBD|FIXME|XXX)\b|待定|待补充")

    def __init__(
        self,
        min_words: int = 20,
        max_line_length: int = 200,
        synonym_pairs: Optional[Iterable[Tuple[str, str]]] = None,
    ) -> None:
        self.min_words = min_words
        self.max_line_length = max_line_length
        self.synonym_pairs: Sequence[Tuple[str, str]] = tuple(
            synonym_pairs
            if synonym_pairs is not None
            else (("系统", "平台"), ("email", "e-mail"), ("login", "log-in"))
        )

    def __call__(self, content: str) -> CheckResult:
        issues: List[CheckIssue] = []

        if not content.strip():
            issues.append(
                CheckIssue(
                    severity=IssueSeverity.ERROR,
                    category="completeness",
                    title="Document is empty",
                    description="There is no content to review.",
                )
            )
        else:
            words = count_words(content)
            if words < self.min_words:
                issues.append(
                    CheckIssue(
                        severity=IssueSeverity.WARNING,
                        category="completeness",
                        title="Document is very short",
                        description=f"Only {words} words; sections may be missing detail.",
                        suggestion="Expand the sections before submitting.",
                    )
                )

        for lineno, line in enumerate(content.splitlines(), start=1):
            match = self.MARKER_RE.search(line)
            if match:
                issues.append(
                    CheckIssue(
                        severity=IssueSeverity.WARNING,
                        category="completeness",
                        title="Unresolved placeholder",
                        description=f"Found '{match.group(0)}' marker.",
                        location=f"line {lineno}",
                    )
                )
            if len(line) > self.max_line_length:
                issues.append(
                    CheckIssue(
                        severity=IssueSeverity.SUGGESTION,
                        category="format",
                        title="Long line",
                        description=f"Line is {len(line)} characters long.",
                        location=f"line {lineno}",
                        suggestion="Break long paragraphs or tables into shorter lines.",
                    )
                )

        lowered = content.lower()
        for first, second in self.synonym_pairs:
            if first.lower() in lowered and second.lower() in lowered:
                issues.append(
                    CheckIssue(
                        severity=IssueSeverity.WARNING,
                        category="consistency",
                        title="Inconsistent terminology",
                        description=f"Both '{first}' and '{second}' are used for the same thing.",
                        location="whole document",
                        suggestion=f"Pick one of '{first}' or '{second}'.",
                    )
                )

        return CheckResult(
            score=self.score(issues),
            issues=issues,
            summary=self.summarize(issues),
        )

    @staticmethod
    def score(issues: Sequence[CheckIssue]) -> int:
        penalty = {
            IssueSeverity.ERROR: 25,
            IssueSeverity.WARNING: 8,
            IssueSeverity.SUGGESTION: 2,
        }
        return max(0, 100 - sum(penalty[i.severity] for i in issues))

    @staticmethod
    def summarize(issues: Sequence[CheckIssue]) -> str:
        if not issues:
            return "No issues found; ready for review."
        return f"Found {len(issues)} issue(s); consider fixing them before review."


"""Unit tests for the automated pre-check."""

from docflow.core import CheckIssue, CheckResult, IssueSeverity, ManualClock
from docflow.review import HeuristicChecker, run_check

GOOD_TEXT = "\n".join(["The rollout plan covers staffing budget and milestones."] * 4)


class CountingChecker:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, content: str) -> CheckResult:
        self.calls += 1
        return CheckResult(score=90, summary="fine")


def broken_checker(content: str) -> CheckResult:
    raise ConnectionError("service unavailable")


class TestRunCheck:
    """Tests for run_check."""

    def test_called_once(self) -> None:
        """The checker is called exactly once and its result kept."""
        checker = CountingChecker()
        result = run_check(checker, "text", clock=ManualClock())
        assert checker.calls == 1
        assert result.score == 90
        assert result.checked_at is not None

    def test_failure_yields_zero_score(self) -> None:
        """A failing checker gives an empty, failed result."""
        result = run_check(broken_checker, "text")
        assert result.failed
        assert result.score == 0
        assert result.issues == []

    def test_disabled(self) -> None:
        """A disabled check never calls the checker."""
        checker = CountingChecker()
        result = run_check(checker, "text", enabled=False)
        assert checker.calls == 0
        assert result.score == 0
        assert not result.failed


class TestHeuristicChecker:
    """Tests for the rule-based checker."""

    def test_clean_document(self) -> None:
        """A reasonable document scores 100."""
        result = HeuristicChecker()(GOOD_TEXT)
        assert result.issues == []
        assert result.score == 100

    def test_empty_document(self) -> None:
        """Empty content is an error."""
        result = HeuristicChecker()("   ")
        assert [i.severity for i in result.issues] == [IssueSeverity.ERROR]
        assert result.score == 75

    def test_placeholder_marker(self) -> None:
        """TODO markers are flagged with their line."""
        result = HeuristicChecker()(GOOD_TEXT + "\nTBD: owner")
        markers = [i for i in result.issues if i.title == "Unresolved placeholder"]
        assert len(markers) == 1
        assert markers[0].location == "line 5"

    def test_long_line(self) -> None:
        """Overlong lines get a suggestion."""
        result = HeuristicChecker(max_line_length=40)(GOOD_TEXT)
        assert [i.severity for i in result.issues] == [IssueSeverity.SUGGESTION] * 4
        assert result.score == 92

    def test_terminology(self) -> None:
        """Mixing configured synonyms is a consistency warning."""
        checker = HeuristicChecker(min_words=1, synonym_pairs=[("系统", "平台")])
        result = checker("本系统部署在平台上")
        assert [i.category for i in result.issues] == ["consistency"]

    def test_score_formula(self) -> None:
        """Each severity costs a fixed number of points."""
        issues = [
            CheckIssue(severity=IssueSeverity.ERROR, title="e", description="e"),
            CheckIssue(severity=IssueSeverity.WARNING, title="w", description="w"),
            CheckIssue(severity=IssueSeverity.WARNING, title="w", description="w"),
            CheckIssue(severity=IssueSeverity.SUGGESTION, title="s", description="s"),
        ]
        assert HeuristicChecker.score(issues) == 57
        assert HeuristicChecker.score(issues * 5) == 0

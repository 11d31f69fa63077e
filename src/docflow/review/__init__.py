"""Review pipeline and the automated pre-check boundary."""

from .checks import Checker, HeuristicChecker, run_check  # noqa: F401
from .pipeline import ReviewPipeline  # noqa: F401

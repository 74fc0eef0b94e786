from dataclasses import dataclass, field
from typing import List

from zxcvbn import zxcvbn

# zxcvbn only looks at the first 100 characters
MAX_ANALYZED_LEN = 100

SCORE_LABELS = ("Very weak", "Weak", "Fair", "Strong", "Very strong")


@dataclass
class StrengthReport:
    score: int
    label: str
    warning: str = ""
    suggestions: List[str] = field(default_factory=list)
    crack_time: str = ""


def strength_analysis(password: str) -> StrengthReport | None:
    """
    Offline password strength analysis using the zxcvbn library.

    Detects common passwords, names, dates, keyboard patterns, repeats
    and sequences.

    Args:
        password: Password to check.

    Returns:
        StrengthReport with a score from 0 (terrible) to 4 (great), or
        None for an empty password.
    """
    if not password:
        return None

    results = zxcvbn(password[:MAX_ANALYZED_LEN], max_length=MAX_ANALYZED_LEN)
    score = results["score"]
    feedback = results.get("feedback") or {}

    return StrengthReport(
        score=score,
        label=SCORE_LABELS[score],
        warning=feedback.get("warning") or "",
        suggestions=list(feedback.get("suggestions") or []),
        crack_time=str(results["crack_times_display"]["offline_slow_hashing_1e4_per_second"]),
    )


def print_strength(password: str) -> None:
    """Print the strength report of a password to the console."""
    report = strength_analysis(password)
    if report is None:
        print(" Strength: n/a (empty password)")
        return

    print(f" Strength: {report.score}/4 ({report.label}), "
          f"offline crack time ~ {report.crack_time}")
    if report.warning:
        print(f"  Warning: {report.warning}")
    for suggestion in report.suggestions:
        print(f"  - {suggestion}")

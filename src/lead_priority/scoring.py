"""Deterministic lead priority scoring.

Score = buying signals (0-10, capped) + target-buyer fit (0-4), range 0-14.

Priority levels:
- high: 2+ raw signals with any fit, or 6+ points
- medium: 3-5 points
- low: 0-2 points

Everything here is pure: no I/O, same inputs always give the same result.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Optional, Sequence

MAX_BUYING_SIGNAL_SCORE = 10
MAX_FIT_SCORE = 4

EXACT_MATCH_POINTS = 2
PARTIAL_MATCH_POINTS = 1

HIGH_THRESHOLD = 6
MEDIUM_THRESHOLD = 3
OVERRIDE_MIN_SIGNALS = 2

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
PRIORITY_LEVELS = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)

CATEGORY_BUYING_SIGNAL = "buying_signal"
CATEGORY_FIT = "fit"

# signal type -> (points, display prefix)
SIGNAL_POINTS: dict[str, tuple[int, str]] = {
    "funding": (2, "Funding"),
    "leadership_change": (2, "Leadership Change"),
    "hiring": (1, "Growth Signal"),
    "expansion": (1, "Growth Signal"),
    "news": (1, "News/Product"),
    "product_launch": (1, "News/Product"),
}
SIGNAL_TYPES = tuple(SIGNAL_POINTS)


@dataclass(frozen=True)
class BreakdownEntry:
    signal_type: str
    signal_name: str
    points: int
    category: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BreakdownEntry":
        return cls(
            signal_type=str(data.get("signal_type", "")),
            signal_name=str(data.get("signal_name", "")),
            points=int(data.get("points", 0)),
            category=str(data.get("category", "")),
        )


@dataclass(frozen=True)
class ScoreResult:
    buying_signal_score: int
    fit_score: int
    priority_score: int
    priority_level: str
    breakdown: list[BreakdownEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "priority_score": self.priority_score,
            "priority_level": self.priority_level,
            "buying_signal_score": self.buying_signal_score,
            "fit_score": self.fit_score,
            "signal_breakdown": [entry.to_dict() for entry in self.breakdown],
        }


def _signal_field(signal: Any, name: str) -> Optional[str]:
    if isinstance(signal, dict):
        value = signal.get(name)
    else:
        value = getattr(signal, name, None)
    return value if isinstance(value, str) else None


def score_buying_signals(signals: Optional[Iterable[Any]]) -> tuple[int, list[BreakdownEntry]]:
    """Sum signal points in list order; only the total is capped."""
    total = 0
    breakdown: list[BreakdownEntry] = []
    for signal in signals or []:
        signal_type = _signal_field(signal, "type")
        if signal_type not in SIGNAL_POINTS:
            continue
        points, prefix = SIGNAL_POINTS[signal_type]
        title = _signal_field(signal, "title") or ""
        total += points
        breakdown.append(
            BreakdownEntry(
                signal_type=signal_type,
                signal_name=f"{prefix}: {title}",
                points=points,
                category=CATEGORY_BUYING_SIGNAL,
            )
        )
    return min(total, MAX_BUYING_SIGNAL_SCORE), breakdown


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def match_fit(value: Optional[str], targets: Optional[Sequence[str]]) -> int:
    """Points for the first target matching ``value``.

    Exact (case-insensitive, trimmed) equality scores 2, either string
    containing the other scores 1. The substring check is symmetric, so a
    short target such as "vp" partially matches many titles, and a blank
    target (or a whitespace-only value) is a partial match for anything.
    """
    if not value or not targets:
        return 0
    lead_value = _normalize(value)
    for target in targets:
        if not isinstance(target, str):
            continue
        target_value = _normalize(target)
        if lead_value == target_value:
            return EXACT_MATCH_POINTS
        if target_value in lead_value or lead_value in target_value:
            return PARTIAL_MATCH_POINTS
    return 0


def score_fit(
    industry: Optional[str],
    title: Optional[str],
    target_industries: Optional[Sequence[str]],
    target_titles: Optional[Sequence[str]],
) -> tuple[int, list[BreakdownEntry]]:
    breakdown: list[BreakdownEntry] = []

    industry_points = match_fit(industry, target_industries)
    if industry_points:
        breakdown.append(
            BreakdownEntry(
                signal_type="industry_match",
                signal_name=f"Industry: {industry}",
                points=industry_points,
                category=CATEGORY_FIT,
            )
        )

    title_points = match_fit(title, target_titles)
    if title_points:
        breakdown.append(
            BreakdownEntry(
                signal_type="title_match",
                signal_name=f"Title: {title}",
                points=title_points,
                category=CATEGORY_FIT,
            )
        )

    return industry_points + title_points, breakdown


def determine_priority_level(priority_score: int, fit_score: int, signal_count: int) -> str:
    # Two independent signals plus any fit is urgent even when the sum is small
    if signal_count >= OVERRIDE_MIN_SIGNALS and fit_score > 0:
        return PRIORITY_HIGH
    if priority_score >= HIGH_THRESHOLD:
        return PRIORITY_HIGH
    if priority_score >= MEDIUM_THRESHOLD:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def score_lead(
    signals: Optional[Sequence[Any]],
    industry: Optional[str],
    title: Optional[str],
    target_industries: Optional[Sequence[str]],
    target_titles: Optional[Sequence[str]],
) -> ScoreResult:
    signal_list = list(signals or [])
    buying_signal_score, signal_breakdown = score_buying_signals(signal_list)
    fit_score, fit_breakdown = score_fit(industry, title, target_industries, target_titles)
    priority_score = buying_signal_score + fit_score
    return ScoreResult(
        buying_signal_score=buying_signal_score,
        fit_score=fit_score,
        priority_score=priority_score,
        priority_level=determine_priority_level(priority_score, fit_score, len(signal_list)),
        breakdown=signal_breakdown + fit_breakdown,
    )

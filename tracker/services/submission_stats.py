from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from tracker.services.api_client import RemoteSubmission

ACCEPTED_VERDICT = "OK"


def _now_seconds(now: datetime | None) -> int:
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp())


def submissions_by_verdict(submissions: Iterable[RemoteSubmission], verdict: str) -> list[RemoteSubmission]:
    return [sub for sub in submissions if sub.verdict == verdict]


def submissions_in_range(
    submissions: Iterable[RemoteSubmission],
    start_seconds: int,
    end_seconds: int,
) -> list[RemoteSubmission]:
    return [
        sub
        for sub in submissions
        if start_seconds <= sub.creation_time_seconds <= end_seconds
    ]


def recent_submissions(
    submissions: Iterable[RemoteSubmission],
    days: int = 30,
    now: datetime | None = None,
) -> list[RemoteSubmission]:
    cutoff = _now_seconds(now) - days * 24 * 60 * 60
    return [sub for sub in submissions if sub.creation_time_seconds >= cutoff]


def daily_submission_counts(
    submissions: Sequence[RemoteSubmission],
    days: int = 365,
    now: datetime | None = None,
) -> list[dict[str, object]]:
    """
    One row per UTC day for the last ``days`` days (oldest first), including
    days without submissions.
    """
    now = now or datetime.now(timezone.utc)
    counts = Counter(
        datetime.fromtimestamp(sub.creation_time_seconds, tz=timezone.utc).date().isoformat()
        for sub in recent_submissions(submissions, days=days, now=now)
    )
    today = now.astimezone(timezone.utc).date()
    rows = []
    for offset in range(days - 1, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        rows.append({"date": day, "count": counts.get(day, 0)})
    return rows


def solved_by_rating(submissions: Iterable[RemoteSubmission]) -> dict[int, int]:
    """Distinct accepted problems with a known rating, bucketed by hundreds."""
    seen: set[str] = set()
    buckets: Counter = Counter()
    for sub in submissions:
        if sub.verdict != ACCEPTED_VERDICT or not sub.problem.rating:
            continue
        key = sub.problem.key
        if key in seen:
            continue
        seen.add(key)
        buckets[(sub.problem.rating // 100) * 100] += 1
    return dict(sorted(buckets.items()))

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable

import requests
from django.conf import settings
from django.utils import timezone

from tracker.exceptions import RemoteServiceError, TransportError
from tracker.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteUserProfile:
    handle: str
    rating: int = 0
    max_rating: int = 0
    rank: str = ""
    max_rank: str = ""
    contribution: int = 0
    last_online_time_seconds: int | None = None
    registration_time_seconds: int | None = None
    avatar: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RemoteUserProfile":
        return cls(
            handle=payload.get("handle", ""),
            rating=payload.get("rating") or 0,
            max_rating=payload.get("maxRating") or 0,
            rank=payload.get("rank") or "",
            max_rank=payload.get("maxRank") or "",
            contribution=payload.get("contribution") or 0,
            last_online_time_seconds=payload.get("lastOnlineTimeSeconds"),
            registration_time_seconds=payload.get("registrationTimeSeconds"),
            avatar=payload.get("avatar") or "",
        )


@dataclass(frozen=True)
class RemoteProblem:
    index: str
    name: str = ""
    contest_id: int | None = None
    rating: int | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return f"{self.contest_id}-{self.index}"


@dataclass(frozen=True)
class RemoteSubmission:
    id: int
    creation_time_seconds: int
    problem: RemoteProblem
    contest_id: int | None = None
    verdict: str | None = None
    programming_language: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RemoteSubmission":
        problem = payload.get("problem") or {}
        return cls(
            id=payload["id"],
            creation_time_seconds=payload["creationTimeSeconds"],
            contest_id=payload.get("contestId"),
            verdict=payload.get("verdict"),
            programming_language=payload.get("programmingLanguage") or "",
            problem=RemoteProblem(
                index=problem.get("index", ""),
                name=problem.get("name", ""),
                contest_id=problem.get("contestId"),
                rating=problem.get("rating"),
                tags=tuple(problem.get("tags") or ()),
            ),
        )


@dataclass(frozen=True)
class RemoteRatingChange:
    contest_id: int
    contest_name: str
    handle: str
    rank: int
    rating_update_time_seconds: int
    old_rating: int
    new_rating: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RemoteRatingChange":
        return cls(
            contest_id=payload["contestId"],
            contest_name=payload.get("contestName", ""),
            handle=payload.get("handle", ""),
            rank=payload.get("rank", 0),
            rating_update_time_seconds=payload["ratingUpdateTimeSeconds"],
            old_rating=payload.get("oldRating", 0),
            new_rating=payload.get("newRating", 0),
        )


def _cache_key(method: str, params: dict[str, Any]) -> str:
    query = "&".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{method}?{query}"


class CodeforcesClient:
    """
    Read-only client for the three Codeforces endpoints the sync engine uses.

    Responses are cached per (method, params) for ``cache_ttl``. Errors are
    raised as ``TransportError`` / ``RemoteServiceError`` and never retried here.
    """

    def __init__(
        self,
        http=requests,
        base_url: str | None = None,
        timeout: float | None = None,
        cache_ttl: timedelta | None = None,
        clock=timezone.now,
    ):
        self._http = http
        self.base_url = (base_url or getattr(settings, "CODEFORCES_API_URL", "https://codeforces.com/api")).rstrip("/")
        self.timeout = timeout if timeout is not None else getattr(settings, "CODEFORCES_TIMEOUT_SECONDS", 10)
        if cache_ttl is None:
            cache_ttl = timedelta(seconds=getattr(settings, "CODEFORCES_CACHE_TTL_SECONDS", 300))
        self.cache = ResponseCache(cache_ttl, clock=clock)
        self._key_locks: dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def _fetch(self, method: str, params: dict[str, Any], key: str) -> Any:
        url = f"{self.base_url}/{method}"
        try:
            response = self._http.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Codeforces request failed for %s: %s", key, exc)
            raise TransportError(f"Request to {method} failed: {exc}", endpoint=key) from exc

        if not 200 <= response.status_code < 300:
            logger.warning("Codeforces returned HTTP %s for %s", response.status_code, key)
            raise TransportError(
                f"HTTP error! status: {response.status_code}",
                endpoint=key,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteServiceError(f"Invalid JSON from {method}", endpoint=key) from exc

        if not isinstance(data, dict):
            raise RemoteServiceError(f"Unexpected response envelope from {method}", endpoint=key)

        if data.get("status") != "OK":
            comment = data.get("comment") or "Codeforces API request failed"
            logger.warning("Codeforces API error for %s: %s", key, comment)
            raise RemoteServiceError(comment, endpoint=key, comment=data.get("comment"))

        result = data.get("result")
        if result is None:
            raise RemoteServiceError("No result data received from Codeforces API", endpoint=key)
        return result

    def _request(self, method: str, params: dict[str, Any], parse: Callable[[dict[str, Any]], Any]) -> list:
        """
        Return the parsed rows for one call, from cache when fresh.

        Concurrent misses on the same key wait for a single network call.
        Only fully parsed results are cached.
        """
        key = _cache_key(method, params)
        with self._lock_for(key):
            hit, rows = self.cache.get(key)
            if hit:
                return list(rows)

            result = self._fetch(method, params, key)
            if not isinstance(result, list):
                raise RemoteServiceError(f"Expected a list result from {method}", endpoint=key)
            try:
                rows = [parse(row) for row in result]
            except (KeyError, TypeError, AttributeError, ValueError) as exc:
                logger.warning("Malformed row in %s result: %r", key, exc)
                raise RemoteServiceError(f"Malformed row in {method} result: {exc!r}", endpoint=key) from exc

            self.cache.set(key, tuple(rows))
            return rows

    def fetch_profiles(self, handles: list[str]) -> list[RemoteUserProfile]:
        if not handles:
            return []
        return self._request("user.info", {"handles": ";".join(handles)}, RemoteUserProfile.from_payload)

    def fetch_submissions(
        self,
        handle: str,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[RemoteSubmission]:
        params: dict[str, Any] = {"handle": handle}
        if offset is not None:
            params["from"] = offset
        if limit is not None:
            params["count"] = limit
        return self._request("user.status", params, RemoteSubmission.from_payload)

    def fetch_rating_history(self, handle: str) -> list[RemoteRatingChange]:
        return self._request("user.rating", {"handle": handle}, RemoteRatingChange.from_payload)

    def clear_cache(self) -> None:
        self.cache.clear()

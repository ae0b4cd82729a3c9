"""Rate-limited, retrying wrapper around the upstream player search API.

Status handling:
- 429: ``UpstreamRateLimited``, retried after a fixed pause, bounded by
  ``upstream_rate_limit_max_attempts``
- 404: the subject does not exist in that region, returns ``[]``
- anything else: logged, returns what could be parsed (normally ``[]``)

All searches in a process share one semaphore so a burst of concurrent
workflows cannot multiply the request rate without bound.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from feedline.categories.registry import parse_timestamp
from feedline.main.config import Settings
from feedline.main.exceptions import UpstreamNotFound, UpstreamOther, UpstreamRateLimited
from feedline.main.logging import get_logger
from feedline.main.models import SubjectRecord

logger = get_logger(__name__)

NAME_FILTER = "filter[playerNames]"
ID_FILTER = "filter[playerIds]"


class UpstreamClient:
    def __init__(
        self,
        session_factory: Callable[[], aiohttp.ClientSession],
        *,
        api_url: str,
        token: str | None,
        title_id: str,
        rate_limit_delay: float = 0.1,
        max_attempts: int = 50,
        max_concurrency: int = 8,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session_factory = session_factory
        self._api_url = api_url
        self._token = token
        self._title_id = title_id
        self._rate_limit_delay = rate_limit_delay
        self._max_attempts = max_attempts
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, session_factory: Callable[[], aiohttp.ClientSession], settings: Settings
    ) -> "UpstreamClient":
        return cls(
            session_factory,
            api_url=settings.upstream_api_url,
            token=settings.upstream_api_token,
            title_id=settings.upstream_title_id,
            rate_limit_delay=settings.upstream_rate_limit_delay,
            max_attempts=settings.upstream_rate_limit_max_attempts,
            max_concurrency=settings.upstream_max_concurrency,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"X-Title-Id": self._title_id, "Accept": "application/vnd.api+json"}
        if self._token:
            headers["Authorization"] = self._token
        return headers

    async def _request(self, region: str, params: dict[str, str]) -> dict[str, Any]:
        url = self._api_url.format(region=region)
        async with self._semaphore:
            try:
                async with self._session_factory().get(
                    url, params=params, headers=self._headers()
                ) as response:
                    if response.status == 429:
                        raise UpstreamRateLimited(f"Rate limited on {region}")
                    if response.status == 404:
                        raise UpstreamNotFound(f"Nothing found on {region}")
                    if response.status >= 400:
                        body = await response.text()
                        raise UpstreamOther(body[:512], status=response.status)
                    return await response.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise UpstreamOther(str(exc) or type(exc).__name__) from exc

    def _log_rate_limited(self, retry_state: RetryCallState) -> None:
        logger.debug(
            "Upstream rate limited, sleeping",
            extra={
                "attempt": retry_state.attempt_number,
                "delay_seconds": self._rate_limit_delay,
            },
        )

    @staticmethod
    def parse_records(document: dict[str, Any], region: str) -> list[SubjectRecord]:
        """Parse a JSON:API document; malformed entries are skipped."""
        records = []
        for item in document.get("data") or []:
            try:
                attributes = item.get("attributes") or {}
                created_at = attributes.get("createdAt")
                records.append(
                    SubjectRecord(
                        id=str(item["id"]),
                        name=attributes["name"],
                        region=attributes.get("shardId") or region,
                        created_at=parse_timestamp(created_at) if created_at else None,
                        raw=item,
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed upstream record",
                    extra={"region": region, "error": str(exc)},
                )
        return records

    async def search(
        self,
        region: str,
        *,
        name: str | None = None,
        subject_id: str | None = None,
    ) -> list[SubjectRecord]:
        """Search one region by subject name or id.

        Usually returns zero or one record; a list because the upstream has
        been seen to return duplicates.
        """
        if (name is None) == (subject_id is None):
            raise ValueError("search needs exactly one of name or subject_id")

        params = {ID_FILTER: subject_id} if subject_id is not None else {NAME_FILTER: name}
        log_extra = {"region": region, "subject_name": name, "subject_id": subject_id}

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(UpstreamRateLimited),
            wait=wait_fixed(self._rate_limit_delay),
            stop=stop_after_attempt(self._max_attempts),
            sleep=self._sleep,
            before_sleep=self._log_rate_limited,
            reraise=True,
        )

        document: dict[str, Any] = {}
        try:
            async for attempt in retrying:
                with attempt:
                    document = await self._request(region, params)
        except UpstreamRateLimited:
            logger.error(
                "Upstream still rate limited, giving up",
                extra={**log_extra, "attempts": self._max_attempts},
            )
            return []
        except UpstreamNotFound:
            logger.debug("Not found upstream", extra=log_extra)
            return []
        except UpstreamOther as exc:
            logger.error(
                "Upstream search failed",
                extra={**log_extra, "status": exc.status, "error": str(exc)},
            )
            return []

        return self.parse_records(document, region)

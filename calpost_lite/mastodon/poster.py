"""Mastodon status poster for calpost_lite."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import httpx

from calpost_lite.calendar.lite_models import Occurrence
from calpost_lite.core.http_client import (
    get_shared_client,
    make_timeout,
    record_client_error,
    record_client_success,
    request_headers,
)
from calpost_lite.domain.status_formatter import StatusFormatter

logger = logging.getLogger(__name__)

CLIENT_ID = "mastodon"
STATUSES_PATH = "/api/v1/statuses"


class MastodonPostError(Exception):
    """A status could not be published."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BatchPolicy(str, Enum):
    """What to do with the rest of a batch after one post fails."""

    ABORT = "abort"
    CONTINUE = "continue"


@dataclass
class PostOutcome:
    """Result of posting one occurrence."""

    occurrence: Occurrence
    success: bool
    status_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchPostResult:
    """Per-item outcomes of a batch, in posting order."""

    outcomes: list[PostOutcome] = field(default_factory=list)
    aborted: bool = False
    first_error: Optional[MastodonPostError] = None

    @property
    def posted(self) -> list[PostOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[PostOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def count(self) -> int:
        """Number of occurrences actually posted."""
        return len(self.posted)


class MastodonPoster:
    """Publishes statuses to a Mastodon-compatible instance."""

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        visibility: str = "public",
        formatter: Optional[StatusFormatter] = None,
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        """Initialize poster.

        Args:
            instance_url: Base URL of the instance, e.g. https://social.example
            access_token: Bearer token with write:statuses scope
            visibility: Default status visibility
            formatter: Status text formatter
            client: Optional HTTP client; the shared pooled client is used otherwise
            request_timeout: Read timeout in seconds for the shared client
        """
        self.instance_url = instance_url.rstrip("/")
        self.access_token = access_token
        self.visibility = visibility
        self.formatter = formatter or StatusFormatter()
        self.client = client
        self.request_timeout = request_timeout

    @classmethod
    def from_config(
        cls, config: Any, client: Optional[httpx.AsyncClient] = None
    ) -> "MastodonPoster":
        """Build a poster from a Config-like object."""
        return cls(
            instance_url=config.mastodon_instance_url,
            access_token=config.mastodon_access_token,
            visibility=getattr(config, "visibility", "public"),
            formatter=StatusFormatter.from_config(config),
            client=client,
            request_timeout=getattr(config, "request_timeout", None),
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is not None:
            return self.client
        return await get_shared_client(CLIENT_ID, timeout=make_timeout(self.request_timeout))

    async def post_status(
        self,
        text: str,
        visibility: Optional[str] = None,
        media_ids: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Publish one status.

        Returns:
            The created status as returned by the instance

        Raises:
            MastodonPostError: On non-2xx response or transport failure
        """
        client = await self._get_client()
        url = f"{self.instance_url}{STATUSES_PATH}"
        payload = {
            "status": text,
            "visibility": visibility or self.visibility,
            "media_ids": media_ids or [],
        }
        headers = request_headers({"Authorization": f"Bearer {self.access_token}"})

        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            await record_client_error(CLIENT_ID)
            logger.exception("Network error posting to %s", url)
            raise MastodonPostError(f"Failed to post to Mastodon: {e}") from e

        if not response.is_success:
            logger.error("Mastodon rejected status: %s %s", response.status_code, response.text)
            raise MastodonPostError(
                f"Failed to post to Mastodon: {response.text}",
                status_code=response.status_code,
            )

        await record_client_success(CLIENT_ID)
        try:
            created = response.json()
        except ValueError:
            created = {}
        logger.info("Posted status %s", created.get("id", "<unknown>"))
        return created

    async def post_occurrence(self, occurrence: Occurrence) -> dict[str, Any]:
        """Format and publish one occurrence."""
        logger.debug("Posting %s at %s", occurrence.uid, occurrence.start_iso)
        return await self.post_status(self.formatter.format(occurrence))

    async def post_batch(
        self,
        occurrences: Iterable[Occurrence],
        policy: BatchPolicy | str = BatchPolicy.ABORT,
    ) -> BatchPostResult:
        """Post occurrences sequentially in list order.

        Under ABORT the first failure stops the batch and later occurrences
        are not attempted; under CONTINUE every occurrence is attempted.
        Failures are recorded in the result rather than raised.
        """
        policy = BatchPolicy(policy)
        result = BatchPostResult()

        for occurrence in occurrences:
            try:
                created = await self.post_occurrence(occurrence)
            except MastodonPostError as e:
                result.outcomes.append(PostOutcome(occurrence, success=False, error=str(e)))
                if result.first_error is None:
                    result.first_error = e
                if policy is BatchPolicy.ABORT:
                    result.aborted = True
                    logger.warning("Aborting batch after failed post of %s", occurrence.uid)
                    break
                continue

            status_id = created.get("id")
            result.outcomes.append(
                PostOutcome(
                    occurrence,
                    success=True,
                    status_id=str(status_id) if status_id is not None else None,
                )
            )

        logger.info(
            "Batch finished: %d posted, %d failed%s",
            len(result.posted),
            len(result.failed),
            " (aborted)" if result.aborted else "",
        )
        return result

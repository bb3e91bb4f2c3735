"""HTTP client for the CalDAV calendar export - calpost_lite version."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from calpost_lite.calendar.lite_models import CalendarComponent
from calpost_lite.calendar.lite_parser import LiteICSParser
from calpost_lite.core.http_client import (
    get_shared_client,
    make_timeout,
    record_client_error,
    record_client_success,
    request_headers,
)

logger = logging.getLogger(__name__)

CLIENT_ID = "calendar_export"


class CalendarFetchError(Exception):
    """Base exception for calendar export errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CalendarNetworkError(CalendarFetchError):
    """Transport-level failure (DNS, connection refused, TLS, timeout)."""


@dataclass
class CalendarSnapshot:
    """Components fetched for one operation, plus request diagnostics."""

    components: list[CalendarComponent]
    export_url: str
    content_length: int = 0
    debug: dict[str, Any] = field(default_factory=dict)


class CalendarExportFetcher:
    """Fetches a time range of a CalDAV collection export and parses it."""

    def __init__(
        self,
        export_url: str,
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
        parser: Optional[LiteICSParser] = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            export_url: Configured export URL (a trailing ``?export`` is tolerated)
            client: Optional HTTP client; the shared pooled client is used otherwise
            request_timeout: Read timeout in seconds for the shared client
            parser: ICS parser (a default one is created if omitted)
        """
        self.export_url = export_url
        self.client = client
        self.request_timeout = request_timeout
        self.parser = parser or LiteICSParser()

    @classmethod
    def from_config(
        cls, config: Any, client: Optional[httpx.AsyncClient] = None
    ) -> "CalendarExportFetcher":
        """Build a fetcher from a Config-like object."""
        return cls(
            export_url=config.calendar_export_url,
            client=client,
            request_timeout=getattr(config, "request_timeout", None),
        )

    def build_export_url(self, start_epoch: int, end_epoch: int, expand: bool = True) -> str:
        """Build the ranged export URL.

        >>> CalendarExportFetcher("https://dav.example/cal/?export").build_export_url(1, 2)
        'https://dav.example/cal/?export&start=1&end=2&expand=1'
        """
        base = self.export_url.replace("?export", "", 1)
        url = f"{base}?export&start={int(start_epoch)}&end={int(end_epoch)}"
        if expand:
            url += "&expand=1"
        return url

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is not None:
            return self.client
        return await get_shared_client(CLIENT_ID, timeout=make_timeout(self.request_timeout))

    async def fetch_text(self, url: str) -> str:
        """GET the export and return its body.

        Raises:
            CalendarFetchError: On a non-2xx response
            CalendarNetworkError: On transport failure
        """
        client = await self._get_client()
        headers = request_headers({"Accept": "text/calendar"})

        try:
            logger.debug("Fetching calendar export from %s", url)
            response = await client.get(url, headers=headers)
        except httpx.TransportError as e:
            await record_client_error(CLIENT_ID)
            logger.exception("Network error fetching calendar export from %s", url)
            raise CalendarNetworkError(f"Network error: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(
                "Calendar export failed: %s %s", response.status_code, response.reason_phrase
            )
            raise CalendarFetchError(
                f"CalDAV export failed: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
            )

        await record_client_success(CLIENT_ID)
        return response.text

    async def fetch_components(
        self,
        start_epoch: int,
        end_epoch: int,
        expand: bool = True,
    ) -> CalendarSnapshot:
        """Fetch and parse the components intersecting [start_epoch, end_epoch].

        Args:
            start_epoch: Range start, whole seconds since the epoch
            end_epoch: Range end, whole seconds since the epoch
            expand: Ask the server to expand recurring events

        Returns:
            CalendarSnapshot with components in document order

        Raises:
            CalendarFetchError: On non-2xx response or unparseable body
            CalendarNetworkError: On transport failure
        """
        url = self.build_export_url(start_epoch, end_epoch, expand=expand)
        text = await self.fetch_text(url)

        try:
            components = self.parser.parse(text)
        except ValueError as e:
            logger.exception("Calendar export from %s is not valid iCalendar", url)
            raise CalendarFetchError(f"Invalid calendar export: {e}", body=text[:500]) from e

        logger.info("Fetched %d calendar components", len(components))
        return CalendarSnapshot(
            components=components,
            export_url=url,
            content_length=len(text),
            debug={"exportUrl": url, "componentCount": len(components)},
        )

"""Passive telemetry capture for one page load.

This module provides the TelemetryCollector class that hooks into Playwright
request and response events to record every outgoing request as a
NetworkEvent and every Set-Cookie response as a CookieCapture. Listener
failures are counted and logged, never raised, so telemetry can never abort
navigation.
"""

import asyncio
import logging
from typing import List, Set, Tuple

from playwright.async_api import Page, Request, Response

from ..errors import TelemetryError
from ..models.capture import CookieCapture, NetworkEvent, ResourceType, epoch_millis

logger = logging.getLogger(__name__)


class TelemetryCollector:
    """Accumulates request and Set-Cookie telemetry during navigation."""

    def __init__(self, page: Page):
        """Initialize the collector for a page.

        Listeners are not attached until ``start()`` is called.

        Args:
            page: Playwright page to observe
        """
        self.page = page
        self._network_events: List[NetworkEvent] = []
        self._cookie_captures: List[CookieCapture] = []
        self._pending: Set[asyncio.Task] = set()
        self._active = False
        self.dropped_events = 0

    def start(self) -> None:
        """Attach listeners; the capture window opens here."""
        if self._active:
            return
        self.page.on("request", self._on_request)
        self.page.on("response", self._on_response)
        self._active = True
        logger.debug("Telemetry listeners attached")

    async def stop(self) -> None:
        """Close the capture window and wait for in-flight header reads."""
        if self._active:
            self._active = False
            for event, handler in (("request", self._on_request), ("response", self._on_response)):
                try:
                    self.page.remove_listener(event, handler)
                except Exception as e:
                    logger.debug(f"Failed to detach {event} listener: {e}")

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

        logger.debug(
            f"Telemetry closed: {len(self._network_events)} requests, "
            f"{len(self._cookie_captures)} Set-Cookie responses, {self.dropped_events} dropped"
        )

    def _drop(self, error: TelemetryError) -> None:
        self.dropped_events += 1
        logger.debug(str(error))

    def _on_request(self, request: Request) -> None:
        """Record an outgoing request."""
        if not self._active:
            return
        try:
            self._network_events.append(NetworkEvent(
                url=request.url,
                resource_type=ResourceType.from_playwright(request.resource_type),
                captured_at_ms=epoch_millis(),
            ))
        except Exception as e:
            self._drop(TelemetryError(f"Failed to record request: {e}"))

    def _on_response(self, response: Response) -> None:
        """Schedule Set-Cookie inspection for a response.

        The Set-Cookie header is only exposed through an async call, so it is
        read in a task stamped with the time the response arrived.
        """
        if not self._active:
            return
        captured_at_ms = epoch_millis()
        try:
            task = asyncio.get_running_loop().create_task(
                self.record_response(response, captured_at_ms)
            )
        except Exception as e:
            self._drop(TelemetryError(f"Failed to schedule response inspection: {e}"))
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def record_response(self, response: Response, captured_at_ms: int) -> None:
        """Record a CookieCapture if the response sets cookies."""
        try:
            header = await response.header_value("set-cookie")
            if header:
                self._cookie_captures.append(CookieCapture(
                    source_url=response.url,
                    raw_set_cookie_header=header,
                    captured_at_ms=captured_at_ms,
                ))
        except Exception as e:
            self._drop(TelemetryError(f"Failed to inspect response headers: {e}"))

    @property
    def network_events(self) -> Tuple[NetworkEvent, ...]:
        """Requests in arrival order."""
        return tuple(self._network_events)

    @property
    def cookie_captures(self) -> Tuple[CookieCapture, ...]:
        """Set-Cookie responses ordered by arrival time."""
        return tuple(sorted(self._cookie_captures, key=lambda c: c.captured_at_ms))

    def __repr__(self) -> str:
        return (
            f"TelemetryCollector(requests={len(self._network_events)}, "
            f"cookie_responses={len(self._cookie_captures)}, "
            f"dropped={self.dropped_events}, active={self._active})"
        )

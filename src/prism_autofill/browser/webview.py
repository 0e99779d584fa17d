"""Script channel into a service page."""

import asyncio
from typing import Any, Callable, Optional, Protocol

from playwright.async_api import Error as PlaywrightError, Page

from prism_autofill.config import settings
from prism_autofill.core.errors import ChannelUnavailableError, ScriptExecutionError
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)

_CLOSED_MARKERS = ("Target closed", "has been closed", "Browser closed", "Connection closed")


class WebViewHandle(Protocol):
    """What the autofill core needs from a page: run a script and read the URL."""

    async def run_script(self, script: str, arg: Any = None) -> Any:
        ...

    def current_url(self) -> Optional[str]:
        ...


class WebViewProvider(Protocol):
    """Owner of the per-service pages and their loading state."""

    def handle(self, service_id: str) -> Optional[WebViewHandle]:
        ...

    def is_loading(self, service_id: str) -> bool:
        ...

    async def wait_until_ready(self, service_id: str, timeout: float) -> bool:
        ...

    async def activate(self, service_id: str) -> None:
        ...


class PlaywrightWebView:
    """WebViewHandle over a Playwright page."""

    def __init__(self, page: Page, script_timeout: Optional[float] = None):
        self.page = page
        self.script_timeout = script_timeout or settings.script_timeout

    def _channel_error(self, error: Exception) -> bool:
        return self.page.is_closed() or any(marker in str(error) for marker in _CLOSED_MARKERS)

    async def run_script(self, script: str, arg: Any = None) -> Any:
        if self.page.is_closed():
            raise ChannelUnavailableError("Page is closed")
        try:
            return await asyncio.wait_for(self.page.evaluate(script, arg), timeout=self.script_timeout)
        except asyncio.TimeoutError as e:
            raise ScriptExecutionError(f"Script timed out after {self.script_timeout}s") from e
        except PlaywrightError as e:
            if self._channel_error(e):
                raise ChannelUnavailableError(str(e)) from e
            raise ScriptExecutionError(str(e)) from e

    def current_url(self) -> Optional[str]:
        if self.page.is_closed():
            return None
        return self.page.url or None


class RetryingWebView:
    """
    Wraps a handle so every script call is retried on execution errors.

    Logical results (an element not found, a false flag) are returned as-is;
    only ScriptExecutionError triggers a retry. ChannelUnavailableError is
    never retried.
    """

    def __init__(
        self,
        handle: WebViewHandle,
        attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        on_retry: Optional[Callable[[ScriptExecutionError], None]] = None,
    ):
        self.handle = handle
        self.attempts = max(1, attempts if attempts is not None else settings.script_retries)
        self.backoff = settings.script_retry_backoff if backoff is None else backoff
        self.on_retry = on_retry

    async def run_script(self, script: str, arg: Any = None) -> Any:
        for attempt in range(1, self.attempts + 1):
            try:
                return await self.handle.run_script(script, arg)
            except ScriptExecutionError as e:
                if attempt == self.attempts:
                    logger.warning("Script retries exhausted", attempts=self.attempts, error=str(e))
                    raise
                logger.debug("Retrying script after execution error", attempt=attempt, error=str(e))
                if self.on_retry:
                    self.on_retry(e)
                await asyncio.sleep(self.backoff)

    def current_url(self) -> Optional[str]:
        return self.handle.current_url()

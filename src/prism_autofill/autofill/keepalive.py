"""Keep background service pages responsive while the app window is unfocused."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from prism_autofill.autofill import scripts
from prism_autofill.browser.webview import WebViewHandle
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.errors import AutofillError
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class KeepAliveConfig:
    """Configuration for the in-page keep-alive patch."""
    online_interval: float = 3.0
    scroll_interval: float = 1.0
    generating_selectors: List[str] = None

    def __post_init__(self):
        if self.generating_selectors is None:
            self.generating_selectors = [
                "[data-testid='stop-button']",
                "button[aria-label*='Stop']",
                "[data-test-id='stop-button']",
                "[data-test-id='thinking-indicator']",
                ".typing-indicator",
                "[data-loading='true']",
                ".generating",
                ".streaming",
            ]


class BackgroundKeepAlive:
    """
    Installs the KEEP_ALIVE page patch.

    The patch guards itself with a window flag, so calling ensure_applied
    again on the same document is a no-op. Nothing here reports failure to
    the caller; problems are logged and dropped.
    """

    def __init__(self, config: Optional[KeepAliveConfig] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.config = config or KeepAliveConfig(
            online_interval=self.settings.keepalive_online_interval,
            scroll_interval=self.settings.keepalive_scroll_interval,
        )
        self.logger = logger.bind(component="background_keepalive")
        self.install_counts: Dict[str, int] = {}
        self._tasks: Set[asyncio.Task] = set()

    async def ensure_applied(self, handle: WebViewHandle, service_id: str) -> bool:
        """
        Apply the patch to the page currently loaded in ``handle``.

        Returns:
            True if the patch is in place (newly or previously), False otherwise
        """
        try:
            result = await handle.run_script(scripts.KEEP_ALIVE, {
                "online_interval_ms": int(self.config.online_interval * 1000),
                "scroll_interval_ms": int(self.config.scroll_interval * 1000),
                "generating_selectors": list(self.config.generating_selectors),
            }) or {}
        except AutofillError as e:
            self.logger.warning("Keep-alive patch failed", service_id=service_id, error=str(e), kind=e.kind)
            return False

        if result.get("applied"):
            self.install_counts[service_id] = self.install_counts.get(service_id, 0) + 1
            self.logger.info("Keep-alive patch installed", service_id=service_id)
            return True
        if result.get("already_applied"):
            self.logger.debug("Keep-alive patch already present", service_id=service_id)
            return True
        return False

    def schedule(self, handle: WebViewHandle, service_id: str, delay: Optional[float] = None) -> asyncio.Task:
        """Apply the patch in the background after ``delay`` seconds."""
        delay = self.settings.keepalive_initial_delay if delay is None else delay

        async def _apply_later() -> None:
            await asyncio.sleep(delay)
            await self.ensure_applied(handle, service_id)

        task = asyncio.ensure_future(_apply_later())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def cancel_pending(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


def create_background_keepalive(settings: Optional[Settings] = None) -> BackgroundKeepAlive:
    """Factory function to create a BackgroundKeepAlive."""
    return BackgroundKeepAlive(settings=settings)

"""Write prompt text into a chat input so the page framework notices it."""

import asyncio
from typing import Optional

from prism_autofill.autofill import scripts
from prism_autofill.browser.webview import WebViewHandle
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.models import ElementRef, InputStrategy
from prism_autofill.utils.logging import get_logger, text_preview

logger = get_logger(__name__)


def _normalize(text: str) -> str:
    return " ".join(text.split())


class TextInjector:
    """
    Injects text with one of two strategies.

    content-editable-region clears the region, tries execCommand insertText,
    falls back to assigning textContent, then fires focus, input and change.
    react-controlled-field goes through the native value setter and fires
    input, change, keydown and keyup.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.logger = logger.bind(component="text_injector")

    async def inject(
        self,
        handle: WebViewHandle,
        element: ElementRef,
        text: str,
        strategy: InputStrategy,
    ) -> bool:
        result = await handle.run_script(scripts.FILL_INPUT, {
            "ref": element.ref,
            "fallback_selector": element.selector if element.ref is None else None,
            "text": text,
            "strategy": strategy.value,
        }) or {}

        if not result.get("ok"):
            self.logger.warning(
                "Text injection failed",
                strategy=strategy.value,
                selector=element.selector,
                reason=result.get("reason"),
            )
            return False

        used = result.get("strategy", strategy.value)
        if used != strategy.value:
            self.logger.info("Element required a different strategy", requested=strategy.value, used=used)
        self.logger.debug(
            "Text injected",
            strategy=used,
            method=result.get("method"),
            events=result.get("events"),
            **text_preview(text),
        )
        return True

    async def verify(self, handle: WebViewHandle, element: ElementRef, text: str) -> bool:
        """Re-read the input and compare a whitespace-normalized prefix."""
        await asyncio.sleep(self.settings.verify_delay)
        prefix_length = self.settings.verify_prefix_length
        result = await handle.run_script(scripts.READ_INPUT, {
            "ref": element.ref,
            "fallback_selector": element.selector if element.ref is None else None,
            "max_length": max(len(text), prefix_length) * 2,
        }) or {}

        expected = _normalize(text)[:prefix_length]
        actual = _normalize(result.get("content") or "")
        matched = bool(result.get("found")) and actual.startswith(expected)
        if not matched:
            self.logger.warning(
                "Injected text did not read back",
                expected=expected,
                actual=actual[:prefix_length],
                found=result.get("found", False),
            )
        return matched


def create_text_injector(settings: Optional[Settings] = None) -> TextInjector:
    """Factory function to create a TextInjector."""
    return TextInjector(settings=settings)

"""Find the send control and press it."""

from typing import Optional

from prism_autofill.autofill import scripts
from prism_autofill.autofill.locator import ElementLocator
from prism_autofill.browser.webview import WebViewHandle
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.errors import SubmitNotFoundError
from prism_autofill.core.models import ElementRef, SelectorSet
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)


class SubmitDispatcher:
    """Clicks the send control with a native click plus a synthetic event wave."""

    def __init__(self, locator: Optional[ElementLocator] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.locator = locator or ElementLocator(settings=self.settings)
        self.logger = logger.bind(component="submit_dispatcher")

    async def find(
        self,
        handle: WebViewHandle,
        selector_set: SelectorSet,
        input_ref: Optional[ElementRef] = None,
    ) -> Optional[ElementRef]:
        return await self.locator.locate_submit(handle, selector_set, input_ref)

    async def click(self, handle: WebViewHandle, element: ElementRef) -> bool:
        result = await handle.run_script(scripts.CLICK_ELEMENT, {
            "ref": element.ref,
            "focus_delay_ms": int(self.settings.click_focus_delay * 1000),
            "wave_delay_ms": int(self.settings.click_wave_delay * 1000),
        }) or {}

        clicked = bool(result.get("clicked"))
        if clicked:
            self.logger.debug("Send control clicked", source=element.source, events=result.get("events"))
        else:
            self.logger.warning("Send control click failed", reason=result.get("reason"))
        return clicked

    async def submit(
        self,
        handle: WebViewHandle,
        selector_set: SelectorSet,
        input_ref: Optional[ElementRef] = None,
    ) -> bool:
        """
        Locate and click the send control.

        Raises:
            SubmitNotFoundError: No candidate reached the selection threshold
        """
        element = await self.find(handle, selector_set, input_ref)
        if element is None:
            raise SubmitNotFoundError(f"No send control found for {selector_set.name}")
        return await self.click(handle, element)


def create_submit_dispatcher(
    locator: Optional[ElementLocator] = None,
    settings: Optional[Settings] = None,
) -> SubmitDispatcher:
    """Factory function to create a SubmitDispatcher."""
    return SubmitDispatcher(locator=locator, settings=settings)

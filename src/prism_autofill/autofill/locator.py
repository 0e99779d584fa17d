"""Locate the message input and the send control inside a service page."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from prism_autofill.autofill import scripts
from prism_autofill.autofill.scoring import ButtonCandidate, ScoringPolicy, choose_submit
from prism_autofill.browser.webview import WebViewHandle
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.models import ElementRef, InputStrategy, SelectorSet
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)

MAX_MATCHES_PER_SELECTOR = 20
MAX_BUTTON_CANDIDATES = 300
NATIVE_FIELD_TAGS = ("input", "textarea")


def qualifies_as_input(snapshot: Dict[str, Any]) -> bool:
    """Rendered, attached, visible, and writable."""
    if not snapshot.get("width") or not snapshot.get("height"):
        return False
    if not snapshot.get("has_box"):
        return False
    if snapshot.get("hidden") or snapshot.get("disabled") or snapshot.get("read_only"):
        return False
    return snapshot.get("visibility") != "hidden" and snapshot.get("display") != "none"


class ElementLocator:
    """
    Finds elements by asking the page for snapshots and deciding in Python.

    Input lookup honours selector order over document order. Send control
    lookup goes through scoring.choose_submit and never guesses below the
    score threshold.
    """

    def __init__(self, settings: Optional[Settings] = None, policy: Optional[ScoringPolicy] = None):
        self.settings = settings or default_settings
        self.policy = policy or ScoringPolicy.from_settings(self.settings)
        self.logger = logger.bind(component="element_locator")

    async def locate_input(self, handle: WebViewHandle, selector_set: SelectorSet) -> Optional[ElementRef]:
        result = await handle.run_script(scripts.SNAPSHOT_INPUTS, {
            "selectors": list(selector_set.input_selectors),
            "max_matches": MAX_MATCHES_PER_SELECTOR,
        }) or {}

        invalid = result.get("invalid_selectors") or []
        if invalid:
            self.logger.debug("Page rejected input selectors", service=selector_set.name, selectors=invalid)

        candidates = sorted(
            result.get("candidates") or [],
            key=lambda c: (c.get("selector_index", 0), c.get("match_index", 0)),
        )
        for candidate in candidates:
            if qualifies_as_input(candidate):
                return ElementRef(
                    ref=candidate.get("ref"),
                    selector=candidate.get("selector"),
                    selector_index=candidate.get("selector_index"),
                    tag=(candidate.get("tag") or "").lower() or None,
                    content_editable=bool(candidate.get("content_editable")),
                )
        return None

    async def locate_input_with_retry(
        self,
        handle: WebViewHandle,
        selector_set: SelectorSet,
        on_retry: Optional[Callable[[], None]] = None,
    ) -> Optional[ElementRef]:
        """
        Poll for a qualifying input with a fixed interval.

        Args:
            handle: Page to search
            selector_set: Service selectors
            on_retry: Called before every attempt after the first

        Returns:
            ElementRef, or None once all attempts are used up
        """
        attempts = max(1, self.settings.locate_attempts)
        for attempt in range(1, attempts + 1):
            element = await self.locate_input(handle, selector_set)
            if element is not None:
                self.logger.debug(
                    "Input located",
                    service=selector_set.name,
                    selector=element.selector,
                    attempt=attempt,
                )
                return element
            if attempt < attempts:
                if on_retry:
                    on_retry()
                await asyncio.sleep(self.settings.locate_interval)

        self.logger.info("Input not found", service=selector_set.name, attempts=attempts)
        return None

    def fallback_input(self, selector_set: SelectorSet) -> ElementRef:
        """Unverified reference to the highest-priority input selector."""
        return ElementRef(
            selector=selector_set.input_selectors[0],
            selector_index=0,
            source="fallback",
            fallback=True,
        )

    async def locate_submit(
        self,
        handle: WebViewHandle,
        selector_set: SelectorSet,
        input_ref: Optional[ElementRef] = None,
    ) -> Optional[ElementRef]:
        result = await handle.run_script(scripts.SNAPSHOT_BUTTONS, {
            "submit_selectors": list(selector_set.submit_selectors),
            "input_ref": input_ref.ref if input_ref else None,
            "ancestor_levels": self.policy.ancestor_levels,
            "max_matches": MAX_MATCHES_PER_SELECTOR,
            "max_candidates": MAX_BUTTON_CANDIDATES,
        }) or {}

        candidates: List[ButtonCandidate] = []
        for item in result.get("candidates") or []:
            try:
                candidates.append(ButtonCandidate.model_validate(item))
            except ValidationError as e:
                self.logger.debug("Skipping malformed button snapshot", error=str(e))

        choice = choose_submit(candidates, selector_set.name, self.policy)
        if choice is None:
            self.logger.info(
                "No send control above threshold",
                service=selector_set.name,
                candidates=len(candidates),
                threshold=self.policy.score_threshold,
            )
            return None

        self.logger.debug(
            "Send control selected",
            service=selector_set.name,
            source=choice.source,
            score=choice.score,
            label=choice.candidate.aria_label or choice.candidate.text[:30],
        )
        return ElementRef(
            ref=choice.candidate.ref,
            selector=choice.candidate.selector,
            selector_index=choice.candidate.selector_index,
            tag=choice.candidate.tag,
            source=choice.source,
            score=choice.score,
        )

    def resolve_strategy(self, element: ElementRef, default: InputStrategy) -> InputStrategy:
        """Match the injection strategy to the element actually found."""
        if element.content_editable:
            return InputStrategy.CONTENT_EDITABLE_REGION
        if element.tag in NATIVE_FIELD_TAGS:
            return InputStrategy.REACT_CONTROLLED_FIELD
        return default


def create_element_locator(settings: Optional[Settings] = None) -> ElementLocator:
    """Factory function to create an ElementLocator."""
    return ElementLocator(settings=settings)

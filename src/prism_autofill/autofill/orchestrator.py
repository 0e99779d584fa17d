"""
Autofill orchestration.

One attempt walks Waiting -> Locating -> Injecting -> Settling -> Submitting
and always ends in a terminal outcome. Stage errors are recorded on the
attempt instead of raised; only ChannelUnavailableError escapes.
"""

import asyncio
from typing import Dict, List, Optional

from prism_autofill.autofill import scripts
from prism_autofill.autofill.catalog import SelectorCatalog
from prism_autofill.autofill.dispatcher import SubmitDispatcher
from prism_autofill.autofill.injector import TextInjector
from prism_autofill.autofill.keepalive import BackgroundKeepAlive
from prism_autofill.autofill.locator import ElementLocator
from prism_autofill.browser.webview import RetryingWebView, WebViewHandle, WebViewProvider
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.errors import (
    ElementNotFoundError,
    ScriptExecutionError,
    SubmitNotFoundError,
    UnsupportedHostError,
    WaitTimeoutError,
)
from prism_autofill.core.models import (
    AutofillAttempt,
    AutofillOutcome,
    AutofillStage,
    ElementRef,
    InputStrategy,
    SelectorSet,
    SequentialReport,
    ServiceProfile,
)
from prism_autofill.core.services import ServiceRegistry
from prism_autofill.utils.logging import get_logger, text_preview

logger = get_logger(__name__)

INJECTION_FAILED = "injection-failed"
VERIFICATION_FAILED = "verification-failed"
SUBMIT_FAILED = "submit-failed"
NO_WEB_VIEW = "no-web-view"
UNKNOWN_SERVICE = "unknown-service"


def custom_service_notice(profile: ServiceProfile) -> str:
    return f"{profile.display_name}: auto-fill is not supported for custom services"


class AutofillOrchestrator:
    """Runs autofill attempts against one service or all built-in services in turn."""

    def __init__(
        self,
        provider: WebViewProvider,
        registry: ServiceRegistry,
        catalog: Optional[SelectorCatalog] = None,
        locator: Optional[ElementLocator] = None,
        injector: Optional[TextInjector] = None,
        dispatcher: Optional[SubmitDispatcher] = None,
        keepalive: Optional[BackgroundKeepAlive] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            provider: Owner of the per-service pages
            registry: Built-in and custom services
            catalog: Selector catalog, built-in one by default
            locator: Element locator
            injector: Text injector
            dispatcher: Send control dispatcher
            keepalive: Background keep-alive patcher
            settings: Timing and retry settings
        """
        self.settings = settings or default_settings
        self.provider = provider
        self.registry = registry
        self.catalog = catalog or SelectorCatalog()
        self.locator = locator or ElementLocator(settings=self.settings)
        self.injector = injector or TextInjector(settings=self.settings)
        self.dispatcher = dispatcher or SubmitDispatcher(self.locator, settings=self.settings)
        self.keepalive = keepalive or BackgroundKeepAlive(settings=self.settings)
        self.logger = logger.bind(component="autofill_orchestrator")

    async def autofill_single(self, service_id: str, text: str) -> bool:
        """True when the text was delivered into the service's input."""
        if not text.strip():
            self.logger.info("Empty prompt, nothing to autofill", service_id=service_id)
            return False
        attempt = await self.run_attempt(service_id, text)
        return attempt.succeeded

    async def autofill_all_sequential(self, text: str) -> Dict[str, bool]:
        report = await self.run_sequential(text)
        return report.results

    async def run_sequential(self, text: str) -> SequentialReport:
        """
        Autofill every built-in service, one after another.

        Custom services are reported in ``skipped``. Attempts never overlap:
        each one reaches its terminal state before the next service is
        brought to the foreground.

        Args:
            text: Prompt text

        Returns:
            SequentialReport with one attempt per built-in service
        """
        report = SequentialReport()
        if not text.strip():
            self.logger.info("Empty prompt, nothing to autofill")
            return report

        targets: List[ServiceProfile] = []
        for profile in self.registry.available_services:
            if profile.is_custom:
                report.skipped[profile.id] = custom_service_notice(profile)
            else:
                targets.append(profile)

        self.logger.info("Sequential autofill started", services=[p.id for p in targets], **text_preview(text))
        for index, profile in enumerate(targets):
            await self.provider.activate(profile.id)
            await asyncio.sleep(self.settings.service_switch_delay)
            await self._activate_page(profile.id)

            attempt = await self.run_attempt(profile.id, text)
            report.attempts.append(attempt)

            if index < len(targets) - 1:
                await asyncio.sleep(self.settings.cooldown_delay)

        self.logger.info(
            "Sequential autofill finished",
            succeeded=report.success_count,
            total=len(report.attempts),
            skipped=list(report.skipped),
        )
        return report

    async def run_attempt(self, service_id: str, text: str) -> AutofillAttempt:
        attempt = AutofillAttempt(service_id=service_id, text=text)
        log = self.logger.bind(service_id=service_id)

        if not text.strip():
            attempt.notice = "Prompt is empty"
            return attempt.finish(AutofillOutcome.SKIPPED)

        profile = self.registry.get(service_id)
        if profile is None:
            log.warning("Unknown service")
            attempt.record_error(UNKNOWN_SERVICE)
            return attempt.finish(AutofillOutcome.FAILED)
        if profile.is_custom:
            attempt.notice = custom_service_notice(profile)
            log.info("Custom service skipped", name=profile.display_name)
            return attempt.finish(AutofillOutcome.SKIPPED)

        raw_handle = self.provider.handle(service_id)
        if raw_handle is None:
            log.warning("No web view for service")
            attempt.record_error(NO_WEB_VIEW)
            return attempt.finish(AutofillOutcome.FAILED)

        await self._wait_for_page(attempt, service_id)

        url = raw_handle.current_url()
        selector_set = self.catalog.resolve_url(url)
        if selector_set is None:
            attempt.record_error(UnsupportedHostError.kind)
            attempt.notice = "Auto-fill is not supported on this page"
            log.info("Unsupported host, skipping", url=url, expected_host=self.catalog.host_for_service(service_id))
            return attempt.finish(AutofillOutcome.SKIPPED)

        handle = RetryingWebView(
            raw_handle,
            attempts=self.settings.script_retries,
            backoff=self.settings.script_retry_backoff,
            on_retry=lambda error: attempt.record_retry(attempt.stage),
        )
        log.info("Autofill attempt started", service=selector_set.name, **text_preview(text))

        await self._check_ready(attempt, handle, selector_set)
        await self._run_stages(attempt, handle, selector_set, text)
        await self.keepalive.ensure_applied(raw_handle, service_id)

        log.info(
            "Autofill attempt finished",
            outcome=attempt.outcome.value,
            input_found=attempt.input_found,
            injected=attempt.injected,
            verified=attempt.verified,
            submitted=attempt.submitted,
            errors=attempt.errors,
            retries=attempt.retries,
        )
        return attempt

    async def _wait_for_page(self, attempt: AutofillAttempt, service_id: str) -> None:
        attempt.stage = AutofillStage.WAITING
        ready = await self.provider.wait_until_ready(service_id, self.settings.wait_timeout)
        if not ready:
            attempt.record_error(WaitTimeoutError.kind)
            self.logger.warning(
                "Page not ready before timeout, continuing",
                service_id=service_id,
                timeout=self.settings.wait_timeout,
            )

    async def _check_ready(self, attempt: AutofillAttempt, handle: WebViewHandle, selector_set: SelectorSet) -> None:
        attempts = max(1, self.settings.wait_attempts)
        for index in range(1, attempts + 1):
            try:
                result = await handle.run_script(scripts.CHECK_READY, {"wait_selector": selector_set.wait_selector}) or {}
            except ScriptExecutionError as e:
                attempt.record_error(e.kind)
                return
            if result.get("complete") and result.get("matched"):
                return
            if index < attempts:
                attempt.record_retry(AutofillStage.WAITING)
                await asyncio.sleep(self.settings.wait_interval)

        attempt.record_error(WaitTimeoutError.kind)
        self.logger.info("Wait precondition never matched, continuing", service=selector_set.name)

    async def _run_stages(
        self,
        attempt: AutofillAttempt,
        handle: WebViewHandle,
        selector_set: SelectorSet,
        text: str,
    ) -> None:
        attempt.stage = AutofillStage.LOCATING
        element = await self._locate_input(attempt, handle, selector_set)

        attempt.stage = AutofillStage.INJECTING
        strategy = self.locator.resolve_strategy(element, selector_set.input_strategy)
        attempt.injected = await self._inject(attempt, handle, element, text, strategy)
        if not attempt.injected:
            attempt.record_error(INJECTION_FAILED)
            timed_out = WaitTimeoutError.kind in attempt.errors
            attempt.finish(AutofillOutcome.TIMEOUT if timed_out else AutofillOutcome.FAILED)
            return

        attempt.stage = AutofillStage.SETTLING
        await asyncio.sleep(self.settings.settle_delay)

        attempt.stage = AutofillStage.SUBMITTING
        input_ref = None if element.fallback else element
        try:
            attempt.submitted = await self.dispatcher.submit(handle, selector_set, input_ref)
            if not attempt.submitted:
                attempt.record_error(SUBMIT_FAILED)
        except SubmitNotFoundError as e:
            attempt.record_error(e.kind)
        except ScriptExecutionError as e:
            attempt.record_error(e.kind)
            attempt.record_error(SUBMIT_FAILED)

        # The typed text stays in place whether or not the click landed
        attempt.finish(AutofillOutcome.SUCCEEDED)

    async def _locate_input(
        self,
        attempt: AutofillAttempt,
        handle: WebViewHandle,
        selector_set: SelectorSet,
    ) -> ElementRef:
        try:
            element = await self.locator.locate_input_with_retry(
                handle,
                selector_set,
                on_retry=lambda: attempt.record_retry(AutofillStage.LOCATING),
            )
        except ScriptExecutionError as e:
            attempt.record_error(e.kind)
            element = None

        if element is None:
            attempt.record_error(ElementNotFoundError.kind)
            return self.locator.fallback_input(selector_set)
        attempt.input_found = True
        return element

    async def _inject(
        self,
        attempt: AutofillAttempt,
        handle: WebViewHandle,
        element: ElementRef,
        text: str,
        strategy: InputStrategy,
    ) -> bool:
        try:
            injected = await self.injector.inject(handle, element, text, strategy)
        except ScriptExecutionError as e:
            attempt.record_error(e.kind)
            return False
        if not injected:
            return False

        try:
            attempt.verified = await self.injector.verify(handle, element, text)
        except ScriptExecutionError as e:
            attempt.record_error(e.kind)
            return True

        if not attempt.verified:
            attempt.record_error(VERIFICATION_FAILED)
            if self.settings.verify_gates_success:
                return False
        return True

    async def _activate_page(self, service_id: str) -> None:
        handle = self.provider.handle(service_id)
        if handle is None:
            return
        selector_set = self.catalog.resolve_url(handle.current_url())
        if selector_set is None:
            return
        try:
            await handle.run_script(scripts.ACTIVATE_PAGE, {
                "refresh_editables": selector_set.input_strategy == InputStrategy.CONTENT_EDITABLE_REGION,
            })
        except ScriptExecutionError as e:
            self.logger.debug("Page activation script failed", service_id=service_id, error=str(e))
            return
        await asyncio.sleep(self.settings.activation_delay)


def create_autofill_orchestrator(
    provider: WebViewProvider,
    registry: ServiceRegistry,
    settings: Optional[Settings] = None,
) -> AutofillOrchestrator:
    """
    Factory function to create an orchestrator with default components.

    Args:
        provider: Owner of the per-service pages
        registry: Service registry
        settings: Optional settings override

    Returns:
        Configured AutofillOrchestrator instance
    """
    return AutofillOrchestrator(provider, registry, settings=settings)

"""Per-service pages in one Playwright browser context."""

import asyncio
from typing import Dict, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Request,
    async_playwright,
)

from prism_autofill.autofill.keepalive import BackgroundKeepAlive
from prism_autofill.browser.webview import PlaywrightWebView
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.models import CustomService, ServiceProfile
from prism_autofill.core.services import ServiceRegistry
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)

READY_POLL_INTERVAL = 0.1


def _is_document_request(page: Page, request: Request) -> bool:
    """True for a request that loads a new document into the main frame."""
    if not request.is_navigation_request():
        return False
    try:
        return request.frame is page.main_frame
    except PlaywrightError:
        # Service worker requests have no frame
        return False


class WebViewStore:
    """
    Owns one page per available service and tracks its loading state.

    A page counts as loading from the main frame's navigation request until
    ``load`` fired and the DOM settle delay passed. Same-document navigations
    (``history.pushState``) issue no request and leave the state alone. A
    failed navigation counts as loaded so callers never wait on a page that
    will not finish. Loading flags are only touched from the event loop thread.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        keepalive: Optional[BackgroundKeepAlive] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the store.

        Args:
            registry: Services to open pages for
            keepalive: Patch applied to each page after it becomes ready
            settings: Browser and timing settings
        """
        self.settings = settings or default_settings
        self.registry = registry
        self.keepalive = keepalive or BackgroundKeepAlive(settings=self.settings)
        self.logger = logger.bind(component="webview_store")

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None

        self.pages: Dict[str, Page] = {}
        self.handles: Dict[str, PlaywrightWebView] = {}
        self.loading_states: Dict[str, bool] = {}
        self.current_service_id: Optional[str] = None
        self._generations: Dict[str, int] = {}
        self._navigations: Dict[str, Request] = {}
        self._tasks: List[asyncio.Task] = []

        if registry.custom_manager is not None:
            registry.custom_manager.subscribe(self._on_custom_services_changed)

    @property
    def is_started(self) -> bool:
        return self.context is not None

    async def start(self) -> None:
        """Launch Chromium and open a page for every available service."""
        if self.is_started:
            return
        self.playwright = await async_playwright().start()
        if self.settings.browser_user_data_dir:
            context = await self.playwright.chromium.launch_persistent_context(
                self.settings.browser_user_data_dir,
                headless=self.settings.browser_headless,
            )
        else:
            self.browser = await self.playwright.chromium.launch(headless=self.settings.browser_headless)
            context = await self.browser.new_context()
        await self.attach(context)

    async def attach(self, context: BrowserContext) -> None:
        self.context = context
        await self.sync_services()
        self.logger.info(
            "Web view store started",
            services=list(self.pages),
            headless=self.settings.browser_headless,
            persistent=bool(self.settings.browser_user_data_dir),
        )

    async def sync_services(self) -> None:
        """Open pages for new services and close pages of removed ones."""
        if self.context is None:
            return
        available = {profile.id: profile for profile in self.registry.available_services}
        for service_id in [sid for sid in self.pages if sid not in available]:
            await self._close_page(service_id)
        for service_id, profile in available.items():
            if service_id not in self.pages:
                await self._open_page(profile)

    async def _open_page(self, profile: ServiceProfile) -> None:
        page = await self.context.new_page()
        service_id = profile.id
        self.pages[service_id] = page
        self.handles[service_id] = PlaywrightWebView(page, self.settings.script_timeout)
        self.loading_states[service_id] = True
        self._generations[service_id] = 0

        page.on("request", lambda request: self._on_request(service_id, page, request))
        page.on("requestfailed", lambda request: self._on_request_failed(service_id, request))
        page.on("load", lambda _: self._on_load(service_id))

        try:
            await page.goto(profile.origin_url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            self.loading_states[service_id] = False
            self.logger.warning("Navigation failed", service_id=service_id, url=profile.origin_url, error=str(e))
        else:
            self.logger.debug("Page opened", service_id=service_id, url=profile.origin_url)

    async def _close_page(self, service_id: str) -> None:
        page = self.pages.pop(service_id, None)
        self.handles.pop(service_id, None)
        self.loading_states.pop(service_id, None)
        self._generations.pop(service_id, None)
        self._navigations.pop(service_id, None)
        if self.current_service_id == service_id:
            self.current_service_id = None
        if page is not None and not page.is_closed():
            await page.close()
        self.logger.info("Page closed", service_id=service_id)

    def _on_request(self, service_id: str, page: Page, request: Request) -> None:
        if service_id not in self.loading_states or not _is_document_request(page, request):
            return
        self._navigations[service_id] = request
        self._generations[service_id] = self._generations.get(service_id, 0) + 1
        self.loading_states[service_id] = True

    def _on_request_failed(self, service_id: str, request: Request) -> None:
        # Aborted requests of a superseded navigation are ignored
        if self._navigations.get(service_id) is not request:
            return
        self._navigations.pop(service_id, None)
        self._generations[service_id] = self._generations.get(service_id, 0) + 1
        self.loading_states[service_id] = False
        self.logger.warning("Navigation failed", service_id=service_id, url=request.url, error=request.failure)

    def _on_load(self, service_id: str) -> None:
        if service_id not in self.loading_states:
            return
        generation = self._generations.get(service_id, 0)
        self._track(asyncio.ensure_future(self._mark_ready(service_id, generation)))

    async def _mark_ready(self, service_id: str, generation: int) -> None:
        await asyncio.sleep(self.settings.dom_settle_delay)
        if self._generations.get(service_id) != generation:
            return
        self.loading_states[service_id] = False
        handle = self.handles.get(service_id)
        if handle is not None:
            self.keepalive.schedule(handle, service_id)
        self.logger.debug("Page ready", service_id=service_id)

    def _on_custom_services_changed(self, services: List[CustomService]) -> None:
        if self.context is None:
            return
        self._track(asyncio.ensure_future(self.sync_services()))

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.append(task)
        task.add_done_callback(lambda done: self._tasks.remove(done) if done in self._tasks else None)

    def handle(self, service_id: str) -> Optional[PlaywrightWebView]:
        return self.handles.get(service_id)

    def is_loading(self, service_id: str) -> bool:
        return self.loading_states.get(service_id, False)

    async def wait_until_ready(self, service_id: str, timeout: float) -> bool:
        """Poll the loading flag; False if it is still set after ``timeout`` seconds."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.is_loading(service_id):
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(READY_POLL_INTERVAL)
        return True

    async def activate(self, service_id: str) -> None:
        page = self.pages.get(service_id)
        if page is None:
            return
        await page.bring_to_front()
        self.current_service_id = service_id

    async def close(self) -> None:
        """Close pages and the browser and stop Playwright."""
        if self.keepalive.pending:
            self.logger.debug("Cancelling pending keep-alive installs", pending=self.keepalive.pending)
        await self.keepalive.cancel_pending()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        for service_id in list(self.pages):
            await self._close_page(service_id)
        if self.context is not None:
            await self.context.close()
            self.context = None
        if self.browser is not None:
            await self.browser.close()
            self.browser = None
        if self.playwright is not None:
            await self.playwright.stop()
            self.playwright = None
        self.logger.info("Web view store closed")

    async def __aenter__(self) -> "WebViewStore":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_webview_store(
    registry: ServiceRegistry,
    settings: Optional[Settings] = None,
) -> WebViewStore:
    """Factory function to create a WebViewStore."""
    return WebViewStore(registry, settings=settings)

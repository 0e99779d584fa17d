"""Application controller wiring the prompt box to the autofill core."""

from typing import Dict, List, Optional

from prism_autofill.autofill.catalog import create_selector_catalog
from prism_autofill.autofill.keepalive import BackgroundKeepAlive
from prism_autofill.autofill.orchestrator import AutofillOrchestrator
from prism_autofill.browser.store import WebViewStore
from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.models import ServiceProfile
from prism_autofill.core.services import (
    CustomServiceManager,
    KeyValueStorage,
    ServiceRegistry,
)
from prism_autofill.utils.logging import get_logger, text_preview

logger = get_logger(__name__)

PARALLEL_MODE_KEY = "parallelMode"
DEFAULT_SERVICE_ID = "chatgpt"


class PromptController:
    """
    Holds the user's prompt and sends it to one service or to all of them.

    The prompt is cleared only when at least one service accepted the text;
    on total failure it is kept exactly as typed.
    """

    def __init__(
        self,
        orchestrator: AutofillOrchestrator,
        registry: ServiceRegistry,
        storage: Optional[KeyValueStorage] = None,
        store: Optional[WebViewStore] = None,
        current_service_id: str = DEFAULT_SERVICE_ID,
    ):
        self.orchestrator = orchestrator
        self.registry = registry
        self.storage = storage
        self.store = store
        self.current_service_id = current_service_id
        self.prompt = ""
        self.notices: List[str] = []
        self.logger = logger.bind(component="prompt_controller")
        self._parallel_mode = bool(storage.get(PARALLEL_MODE_KEY, False)) if storage else False

    @property
    def parallel_mode(self) -> bool:
        return self._parallel_mode

    @parallel_mode.setter
    def parallel_mode(self, value: bool) -> None:
        self._parallel_mode = bool(value)
        if self.storage is not None:
            self.storage.set(PARALLEL_MODE_KEY, self._parallel_mode)

    @property
    def current_service(self) -> Optional[ServiceProfile]:
        return self.registry.get(self.current_service_id)

    def select_service(self, service_id: str) -> bool:
        if self.registry.get(service_id) is None:
            self.logger.warning("Unknown service selected", service_id=service_id)
            return False
        self.current_service_id = service_id
        return True

    async def submit(self, parallel: Optional[bool] = None) -> Dict[str, bool]:
        """
        Autofill the prompt into the current service, or every built-in
        service in parallel mode.

        Args:
            parallel: Overrides the stored parallel mode for this call

        Returns:
            Mapping of service id to whether the text was delivered
        """
        if not self.prompt.strip():
            self.logger.info("Prompt is empty, nothing to send")
            return {}

        use_parallel = self.parallel_mode if parallel is None else parallel
        if use_parallel:
            report = await self.orchestrator.run_sequential(self.prompt)
            self.notices.extend(report.skipped.values())
            results = report.results
        else:
            attempt = await self.orchestrator.run_attempt(self.current_service_id, self.prompt)
            if attempt.notice:
                self.notices.append(attempt.notice)
            results = {attempt.service_id: attempt.succeeded}

        if any(results.values()):
            self.logger.info("Prompt delivered, clearing input", results=results, **text_preview(self.prompt))
            self.prompt = ""
        else:
            self.logger.warning("Prompt not delivered anywhere, keeping input", results=results)
        return results

    async def start(self) -> None:
        if self.store is not None:
            await self.store.start()

    async def close(self) -> None:
        if self.store is not None:
            await self.store.close()

    async def __aenter__(self) -> "PromptController":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_controller(settings: Optional[Settings] = None) -> PromptController:
    """
    Wire storage, services, pages and the orchestrator together.

    Args:
        settings: Optional settings override

    Returns:
        PromptController whose store still has to be started
    """
    settings = settings or default_settings
    storage = KeyValueStorage(settings.storage_path)
    registry = ServiceRegistry(CustomServiceManager(storage, max_services=settings.max_custom_services))
    keepalive = BackgroundKeepAlive(settings=settings)
    store = WebViewStore(registry, keepalive=keepalive, settings=settings)
    orchestrator = AutofillOrchestrator(
        store,
        registry,
        catalog=create_selector_catalog(),
        keepalive=keepalive,
        settings=settings,
    )
    return PromptController(orchestrator, registry, storage=storage, store=store)

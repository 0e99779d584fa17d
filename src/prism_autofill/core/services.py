"""Service registry: built-in chat services plus user-defined custom services."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from prism_autofill.config import Settings, settings as default_settings
from prism_autofill.core.models import CustomService, ServiceProfile
from prism_autofill.utils.logging import get_logger

logger = get_logger(__name__)

CUSTOM_SERVICES_KEY = "customAIServices"

BUILTIN_SERVICES: List[ServiceProfile] = [
    ServiceProfile(id="chatgpt", display_name="ChatGPT", origin_url="https://chatgpt.com/"),
    ServiceProfile(id="gemini", display_name="Gemini", origin_url="https://gemini.google.com/app"),
    ServiceProfile(id="claude", display_name="Claude", origin_url="https://claude.ai/new"),
]


class KeyValueStorage:
    """Durable JSON-file key-value store. Every write goes straight to disk."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or default_settings.storage_path).expanduser()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Storage file unreadable, starting empty", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")


class CustomServiceManager:
    """
    Bounded list of user-configured services.

    Storage is the authoritative copy; the in-memory list is written back on
    every mutation and listeners are notified afterwards.
    """

    def __init__(self, storage: KeyValueStorage, max_services: Optional[int] = None):
        self.storage = storage
        self.max_services = max_services or default_settings.max_custom_services
        self.logger = logger.bind(component="custom_service_manager")
        self._services: List[CustomService] = self._load()
        self._listeners: List[Callable[[List[CustomService]], None]] = []

    @property
    def services(self) -> List[CustomService]:
        return list(self._services)

    @property
    def valid_services(self) -> List[CustomService]:
        return [service for service in self._services if service.is_valid]

    @property
    def can_add_more(self) -> bool:
        return len(self._services) < self.max_services

    def subscribe(self, callback: Callable[[List[CustomService]], None]) -> None:
        self._listeners.append(callback)

    def add_service(self, name: str = "", url: str = "") -> Optional[CustomService]:
        """Append a service; returns None when the list is already full."""
        if not self.can_add_more:
            self.logger.warning("Custom service limit reached", max_services=self.max_services)
            return None
        service = CustomService(name=name, url=url)
        self._services.append(service)
        self._save()
        return service

    def update_service(self, index: int, name: Optional[str] = None, url: Optional[str] = None) -> bool:
        if not 0 <= index < len(self._services):
            return False
        current = self._services[index]
        self._services[index] = current.model_copy(update={
            "name": current.name if name is None else name,
            "url": current.url if url is None else url,
        })
        self._save()
        return True

    def remove_service(self, index: int) -> bool:
        if not 0 <= index < len(self._services):
            return False
        removed = self._services.pop(index)
        self.logger.info("Custom service removed", service_id=removed.id, name=removed.name)
        self._save()
        return True

    def _save(self) -> None:
        self.storage.set(CUSTOM_SERVICES_KEY, [service.model_dump() for service in self._services])
        for callback in list(self._listeners):
            callback(self.services)

    def _load(self) -> List[CustomService]:
        raw = self.storage.get(CUSTOM_SERVICES_KEY, [])
        try:
            services = [CustomService.model_validate(item) for item in raw or []]
        except (TypeError, ValidationError) as e:
            self.logger.warning("Stored custom services are invalid, ignoring", error=str(e))
            return []
        return services[:self.max_services]


class ServiceRegistry:
    """Built-in services first, then the valid custom ones."""

    def __init__(self, custom_manager: Optional[CustomServiceManager] = None):
        self.custom_manager = custom_manager

    @property
    def builtin_services(self) -> List[ServiceProfile]:
        return list(BUILTIN_SERVICES)

    @property
    def available_services(self) -> List[ServiceProfile]:
        services = self.builtin_services
        if self.custom_manager:
            services.extend(service.to_profile() for service in self.custom_manager.valid_services)
        return services

    def get(self, service_id: str) -> Optional[ServiceProfile]:
        for service in self.available_services:
            if service.id == service_id:
                return service
        return None

    def is_builtin(self, service_id: str) -> bool:
        return any(service.id == service_id for service in BUILTIN_SERVICES)


def create_service_registry(settings: Optional[Settings] = None) -> ServiceRegistry:
    """
    Factory function to create a registry backed by durable storage.

    Args:
        settings: Settings providing the storage path and custom service bound

    Returns:
        Configured ServiceRegistry instance
    """
    settings = settings or default_settings
    storage = KeyValueStorage(settings.storage_path)
    return ServiceRegistry(CustomServiceManager(storage, max_services=settings.max_custom_services))

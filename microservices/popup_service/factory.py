"""
Popup Service Factory

Factory for creating popup engine instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import get_settings
from core.config.engine_config import PopupEngineConfig
from core.config.logging_config import LoggingConfig

from .environment import AsyncioTimerService, PageEnvironment
from .events.publishers import PopupEventPublisher
from .popup_repository import PopupStateRepository
from .popup_service import PopupEngine
from .protocols import EventBusProtocol, KeyValueStoreProtocol
from .storage import InMemoryKeyValueStore, create_store

logger = logging.getLogger(__name__)


def configure_logging(config: LoggingConfig) -> None:
    """Configure root logging from LoggingConfig"""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=config.log_format,
        filename=config.log_file or None,
    )


class PopupServiceFactory:
    """Factory for creating popup engine components"""

    def __init__(
        self,
        config: Optional[PopupEngineConfig] = None,
        event_bus: Optional[EventBusProtocol] = None,
        durable_store: Optional[KeyValueStoreProtocol] = None,
        session_store: Optional[KeyValueStoreProtocol] = None,
    ):
        self.config = config or get_settings()
        self._event_bus = event_bus
        self._durable_store = durable_store
        self._session_store = session_store
        self._repository: Optional[PopupStateRepository] = None
        self._environment: Optional[PageEnvironment] = None
        self._event_publisher: Optional[PopupEventPublisher] = None
        self._engine: Optional[PopupEngine] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        configure_logging(self.config.logging)
        logger.info("Initializing Popup Service components...")

        # Durable history follows the configured backend; session counters
        # live as long as this process
        durable_store = self._durable_store or create_store(
            self.config.storage_backend, self.config.storage_dir
        )
        session_store = self._session_store or InMemoryKeyValueStore()

        self._repository = PopupStateRepository(
            durable_store=durable_store,
            session_store=session_store,
            namespace=self.config.storage_namespace,
        )
        self._repository.load()

        self._environment = PageEnvironment()
        self._event_publisher = PopupEventPublisher(
            event_bus=self._event_bus,
            source=self.config.event_source,
        )

        self._engine = PopupEngine(
            repository=self._repository,
            environment=self._environment,
            timers=AsyncioTimerService(),
            event_publisher=self._event_publisher,
            config=self.config,
        )

        logger.info("Popup Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Popup Service components...")

        if self._engine:
            self._engine.close()
            await self._engine.flush_events()

        logger.info("Popup Service components closed")

    @property
    def repository(self) -> PopupStateRepository:
        """Get state repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def environment(self) -> PageEnvironment:
        """Get page environment"""
        if not self._environment:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._environment

    @property
    def engine(self) -> PopupEngine:
        """Get popup engine"""
        if not self._engine:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._engine

    @property
    def event_publisher(self) -> Optional[PopupEventPublisher]:
        """Get event publisher"""
        return self._event_publisher


# Global factory instance
_factory: Optional[PopupServiceFactory] = None


async def get_factory() -> PopupServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = PopupServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "configure_logging",
    "PopupServiceFactory",
    "get_factory",
    "close_factory",
]

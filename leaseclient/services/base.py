"""
Base service classes and shared context.

The ServiceContext holds all shared state and dependencies that services and
verification flows need, so the CLI and any embedding application build
them the same way.
"""

import logging
from pathlib import Path
from typing import Callable, Optional
from dataclasses import dataclass

import httpx

from ..config import Config, load_config
from ..credential_store import CredentialStore, FileCredentialStore
from ..gateway import AuthGateway
from ..navigation import Navigator
from ..refresh import RefreshCoordinator
from ..transport import Transport

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """
    Shared context for all services.

    The store is injected rather than reached globally, so tests and
    alternative hosts can substitute their own.
    """
    config: Config
    store: CredentialStore
    transport: Transport
    refresher: RefreshCoordinator
    gateway: AuthGateway
    navigator: Navigator

    @classmethod
    def create(
        cls,
        config: Optional[Config] = None,
        store: Optional[CredentialStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        on_navigate: Optional[Callable[[str], None]] = None
    ) -> "ServiceContext":
        """
        Factory method to create a ServiceContext with all dependencies.

        Args:
            config: Optional config (loads from env if not provided)
            store: Optional credential store (file store from config if not provided)
            client: Optional pre-built httpx client
            on_navigate: Callback invoked when the client requests a redirect

        Returns:
            Configured ServiceContext
        """
        cfg = config or load_config()
        store = store or FileCredentialStore(Path(cfg.storage.credentials_file))
        transport = Transport(cfg.api.base_url, timeout=cfg.api.timeout_seconds, client=client)
        refresher = RefreshCoordinator(
            transport,
            store,
            refresh_path=cfg.api.refresh_path,
            single_flight=cfg.auth.refresh_single_flight,
        )
        navigator = Navigator(login_path=cfg.auth.login_path, on_navigate=on_navigate)
        gateway = AuthGateway(transport, store, refresher, navigator)

        logger.debug(f"Client context created for {cfg.api.base_url}")
        return cls(
            config=cfg,
            store=store,
            transport=transport,
            refresher=refresher,
            gateway=gateway,
            navigator=navigator,
        )

    async def close(self):
        """Clean up resources."""
        await self.transport.close()


class BaseService:
    """Base class for all services."""

    def __init__(self, context: ServiceContext):
        self.context = context

    @property
    def config(self) -> Config:
        return self.context.config

    @property
    def gateway(self) -> AuthGateway:
        return self.context.gateway

    @property
    def store(self) -> CredentialStore:
        return self.context.store

"""Harbinger composition root: wires every service from Settings."""

from __future__ import annotations

import logging

from harbinger.auth.credentials import CredentialStore, get_credential_store
from harbinger.auth.device_flow import DeviceFlowAuthenticator
from harbinger.config import Settings, settings as default_settings
from harbinger.services.cache_service import TTLCache
from harbinger.services.catalog_service import RepositoryCatalogFetcher
from harbinger.services.github_client import GitHubClient
from harbinger.services.repository_store import RepositoryManager, RepositoryStore, get_repository_store
from harbinger.services.workflow_detection import WorkflowViabilityDetector, get_workflow_cache_file
from harbinger.services.workflow_monitor import WorkflowStatusMonitor

logger = logging.getLogger(__name__)


def configure_logging(config: Settings | None = None) -> None:
    config = config or default_settings
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))


class Harbinger:
    """Owns one instance of each service and closes their HTTP clients.

    Usage:
        async with Harbinger() as app:
            app.monitor.subscribe(observer)
            app.monitor.start_monitoring()
    """

    def __init__(
        self,
        config: Settings | None = None,
        credentials: CredentialStore | None = None,
        store: RepositoryStore | None = None,
        api_transport=None,
        oauth_transport=None,
    ):
        config = config or default_settings
        self.settings = config
        self.credentials = credentials or get_credential_store(config)
        self.store = store or get_repository_store(config)
        self.repositories = RepositoryManager(self.store)

        self.client = GitHubClient(
            self.credentials,
            base_url=config.github_api_url,
            timeout=config.http_timeout,
            transport=api_transport,
        )
        self.authenticator = DeviceFlowAuthenticator(
            self.credentials,
            client_id=config.github_client_id,
            scopes=config.oauth_scope_list,
            base_url=config.github_oauth_url,
            timeout=config.http_timeout,
            transport=oauth_transport,
        )
        self.catalog = RepositoryCatalogFetcher(
            self.client, TTLCache(default_ttl=config.catalog_cache_ttl_seconds)
        )
        self.detector = WorkflowViabilityDetector(
            self.client,
            TTLCache(default_ttl=config.workflow_cache_ttl_seconds),
            debounce=config.detection_debounce_seconds,
            batch_size=config.detection_batch_size,
            batch_delay=config.detection_batch_delay_seconds,
            persistent_cache=get_workflow_cache_file(config),
        )
        self.monitor = WorkflowStatusMonitor(
            self.client,
            self.store,
            refresh_interval=config.refresh_interval_seconds,
            run_limit=config.workflow_run_limit,
        )

    async def close(self) -> None:
        if self.monitor.is_monitoring:
            self.monitor.stop_monitoring(cancel_in_flight=True)
        await self.client.close()
        await self.authenticator.close()
        logger.info("Harbinger stopped")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

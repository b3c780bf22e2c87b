"""Wiring of the screening components for one process."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from geargrab.accounts.provisioner import (
    AccountProvisioner,
    DatabaseAccountProvisioner,
    InMemoryAccountProvisioner,
)
from geargrab.config.settings import Settings
from geargrab.db.repositories.screening import SqlScreeningRecordStore
from geargrab.notifications.notifier import ComplianceNotifier, create_compliance_notifier
from geargrab.providers.registry import ProviderRegistry, build_provider_registry

from .admin import ScreeningAdminService
from .clock import Clock, SystemClock
from .orchestrator import OrchestratorConfig, WorkflowOrchestrator, create_workflow_orchestrator
from .registration import RegistrationService
from .store import InMemoryScreeningRecordStore, ScreeningRecordStore
from .supervisor import ScreeningTaskSupervisor
from .webhooks import WebhookService


@dataclass
class ScreeningServices:
    """Every collaborator of the screening workflow, built once per process."""

    store: ScreeningRecordStore
    registry: ProviderRegistry
    notifier: ComplianceNotifier
    provisioner: AccountProvisioner
    clock: Clock
    orchestrator: WorkflowOrchestrator
    supervisor: ScreeningTaskSupervisor
    registration: RegistrationService
    admin: ScreeningAdminService
    webhooks: WebhookService

    async def aclose(self) -> None:
        """Stop running workflows and release vendor clients."""
        await self.supervisor.shutdown()
        await self.registry.aclose()


def create_screening_services(
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    store: ScreeningRecordStore | None = None,
    registry: ProviderRegistry | None = None,
    notifier: ComplianceNotifier | None = None,
    provisioner: AccountProvisioner | None = None,
    clock: Clock | None = None,
) -> ScreeningServices:
    """Build the screening components from settings.

    With a session factory, records and accounts are kept in the database.
    Without one, in-memory stores are used. Any component may be passed in
    to replace the default.
    """
    if store is None:
        store = (
            SqlScreeningRecordStore(session_factory)
            if session_factory is not None
            else InMemoryScreeningRecordStore()
        )
    if provisioner is None:
        provisioner = (
            DatabaseAccountProvisioner(session_factory)
            if session_factory is not None
            else InMemoryAccountProvisioner()
        )
    registry = registry or build_provider_registry(settings)
    notifier = notifier or create_compliance_notifier(settings)
    clock = clock or SystemClock()

    orchestrator = create_workflow_orchestrator(
        store=store,
        registry=registry,
        notifier=notifier,
        provisioner=provisioner,
        clock=clock,
        config=OrchestratorConfig(
            poll_interval_seconds=settings.SCREENING_POLL_INTERVAL_SECONDS,
            max_poll_attempts=settings.SCREENING_MAX_POLL_ATTEMPTS,
        ),
    )
    supervisor = ScreeningTaskSupervisor(store)

    return ScreeningServices(
        store=store,
        registry=registry,
        notifier=notifier,
        provisioner=provisioner,
        clock=clock,
        orchestrator=orchestrator,
        supervisor=supervisor,
        registration=RegistrationService(
            store,
            registry,
            orchestrator,
            supervisor,
            default_tier=settings.SCREENING_DEFAULT_TIER,
            clock=clock,
        ),
        admin=ScreeningAdminService(store, registry, orchestrator, supervisor, clock=clock),
        webhooks=WebhookService(
            store,
            registry,
            orchestrator,
            supervisor,
            secret_for=settings.webhook_secret,
            allow_unsigned=settings.DEBUG,
        ),
    )

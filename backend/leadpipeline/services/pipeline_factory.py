"""
Pipeline Service Factory
Wires storage, notification and configuration into a PipelineService
"""
import logging
from typing import Optional

from supabase import create_client, Client

from leadpipeline.core.config import Settings, get_settings, get_pipeline_config
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.infrastructure.storage.memory_store import InMemoryCardStore, InMemoryRosterStore
from leadpipeline.infrastructure.storage.supabase_store import SupabaseCardStore, SupabaseRosterStore
from leadpipeline.infrastructure.notifications.senders import (
    LoggingNotificationSender,
    SupabaseNotificationSender,
)

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """
    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    if not settings.supabase_url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )
    return create_client(settings.supabase_url, settings.supabase_service_key)


def build_pipeline_service(
    settings: Optional[Settings] = None,
    config: Optional[PipelineConfig] = None
) -> PipelineService:
    """Build a PipelineService for the configured storage backend."""
    settings = settings or get_settings()
    config = config or get_pipeline_config()

    if settings.storage_backend == "supabase":
        supabase = create_supabase_client(settings)
        service = PipelineService(
            card_store=SupabaseCardStore(supabase, config),
            roster_store=SupabaseRosterStore(supabase, config),
            notifier=SupabaseNotificationSender(supabase),
            config=config,
        )
    elif settings.storage_backend == "memory":
        service = PipelineService(
            card_store=InMemoryCardStore(),
            roster_store=InMemoryRosterStore(),
            notifier=LoggingNotificationSender(),
            config=config,
        )
    else:
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")

    logger.info(f"Pipeline service ready (storage={settings.storage_backend}, env={settings.environment})")
    return service


# Singleton instance helper
_pipeline_service: Optional[PipelineService] = None


def get_pipeline_service() -> PipelineService:
    """Get or create the process-wide PipelineService."""
    global _pipeline_service
    if _pipeline_service is None:
        _pipeline_service = build_pipeline_service()
    return _pipeline_service

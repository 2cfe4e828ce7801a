"""
Salon AI

Composition root: logging setup, shared component wiring, and the
startup/shutdown lifecycle for hosts that embed the core (HTTP layer,
SMS webhook worker, scripts).

Usage:
    async with lifespan():
        registry = get_closure_registry()
        service = get_conversation_service()
        intent = await service.process_message("salon-A", "¿Abrís mañana?")
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from salon_ai.config import settings
from salon_ai.core.closures import (
    AvailabilityEngine,
    ClosureRegistry,
    ClosureRepository,
    SqlClosureRepository,
)
from salon_ai.core.conversation import ConversationReconciler, ConversationService
from salon_ai.infra.booking_api import get_booking_client
from salon_ai.infra.claude import ClaudeClient
from salon_ai.infra.database import check_db_health, close_db, get_session_factory, init_db
from salon_ai.infra.notifications import SmsNotifier


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


logger = logging.getLogger(__name__)

_repository: Optional[ClosureRepository] = None
_engine: Optional[AvailabilityEngine] = None
_registry: Optional[ClosureRegistry] = None
_notifier: Optional[SmsNotifier] = None
_conversation_service: Optional[ConversationService] = None


def get_closure_repository() -> ClosureRepository:
    """Get singleton closure repository backed by the configured database."""
    global _repository
    if _repository is None:
        _repository = SqlClosureRepository(get_session_factory())
    return _repository


def get_availability_engine() -> AvailabilityEngine:
    """Get singleton AvailabilityEngine."""
    global _engine
    if _engine is None:
        _engine = AvailabilityEngine(get_closure_repository())
    return _engine


def get_notifier() -> SmsNotifier:
    """Get singleton SmsNotifier."""
    global _notifier
    if _notifier is None:
        _notifier = SmsNotifier()
    return _notifier


def get_closure_registry() -> ClosureRegistry:
    """Get singleton ClosureRegistry."""
    global _registry
    if _registry is None:
        _registry = ClosureRegistry(
            repository=get_closure_repository(),
            appointment_lookup=get_booking_client(),
            notifier=get_notifier(),
            status_updater=get_booking_client(),
        )
    return _registry


def get_conversation_service() -> ConversationService:
    """Get singleton ConversationService.

    Runs in degraded (keyword fallback) mode when no Anthropic API key
    is configured.
    """
    global _conversation_service
    if _conversation_service is None:
        llm = ClaudeClient.get_instance() if settings.llm_configured else None
        _conversation_service = ConversationService(
            reconciler=ConversationReconciler(get_availability_engine()),
            llm=llm,
            profile_lookup=get_booking_client(),
        )
    return _conversation_service


async def startup() -> None:
    """Initialize logging and storage."""
    setup_logging()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    # Create tables only in development - use migrations in production
    if settings.is_development:
        try:
            await init_db()
            logger.info("Database tables initialized")
        except Exception as e:
            logger.warning(f"Database init skipped: {e}")

    if not await check_db_health():
        logger.warning("Database unreachable - closure checks will fail until it recovers")
    if not settings.llm_configured:
        logger.warning("Anthropic API key not set - conversation runs in fallback mode")
    if not settings.sms_configured:
        logger.warning("Twilio not configured - customer notifications are only logged")


async def shutdown() -> None:
    """Close external connections and reset singletons."""
    global _repository, _engine, _registry, _notifier, _conversation_service
    logger.info("Shutting down...")

    await get_booking_client().close()
    if _notifier is not None:
        await _notifier.close()
    if ClaudeClient._instance is not None:
        await ClaudeClient._instance.close()
        ClaudeClient.reset_instance()

    await close_db()
    logger.info("Database connections closed")

    _repository = _engine = _registry = _notifier = _conversation_service = None


@asynccontextmanager
async def lifespan() -> AsyncGenerator[None, None]:
    """Startup/shutdown context for embedding hosts."""
    await startup()
    try:
        yield
    finally:
        await shutdown()

"""Application entry point serving the deal workflow API over FastAPI.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when a DSN is configured
- **Record store** and **audit log** SQLite databases
- **Retry logic** for outbound HTTP with operator email on exhaustion
- **Email** through Resend, or a logging sender when no API key is set
- **Blob storage** on the local filesystem or in Supabase Storage
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from dealflow.api.errors import register_error_handlers
from dealflow.api.routes import router as api_router
from dealflow.audit.logger import AuditLogger
from dealflow.audit.store import close_audit_db, init_audit_db
from dealflow.config import Settings, get_settings, validate_credentials
from dealflow.contracts.delivery import DeliveryService
from dealflow.contracts.pipeline import ContractPipeline
from dealflow.contracts.renderer import ContractRenderer
from dealflow.contracts.storage import BlobStorage, LocalBlobStorage, SupabaseBlobStorage
from dealflow.health import register_health_routes
from dealflow.negotiation.engine import NegotiationEngine
from dealflow.notifications.notifier import Notifier
from dealflow.notifications.sender import EmailSender, LogEmailSender, ResendEmailSender
from dealflow.observability.metrics import setup_metrics
from dealflow.observability.middleware import RequestIdMiddleware
from dealflow.observability.sentry import get_sentry_processor, init_sentry
from dealflow.otp.verifier import OtpVerifier
from dealflow.resilience.retry import configure_error_notifier
from dealflow.signing.workflow import SigningWorkflow
from dealflow.store.sqlite import SQLiteRecordStore, init_record_db
from dealflow.tokens.service import TokenService

logger = structlog.get_logger()


def configure_logging(production: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.  ERROR
    events are forwarded to Sentry in both modes when it is initialized.

    Args:
        production: Enable production mode if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        get_sentry_processor(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="dealflow")


def build_email_sender(settings: Settings) -> EmailSender:
    """Return a Resend sender, or a logging sender when no key is configured."""
    api_key = settings.resend_api_key.get_secret_value()
    if api_key:
        logger.info("Resend email sender initialized")
        return ResendEmailSender(api_key, settings.email_from)
    logger.info("RESEND_API_KEY not set, emails will be logged only")
    return LogEmailSender()


def build_blob_storage(settings: Settings) -> BlobStorage:
    """Return the blob storage backend selected by ``blob_backend``."""
    if settings.blob_backend == "supabase":
        logger.info("Supabase blob storage initialized", bucket=settings.contracts_bucket)
        return SupabaseBlobStorage(
            settings.supabase_url,
            settings.supabase_service_key.get_secret_value(),
            settings.contracts_bucket,
        )
    settings.blob_local_root.mkdir(parents=True, exist_ok=True)
    logger.info("Local blob storage initialized", root=str(settings.blob_local_root))
    return LocalBlobStorage(settings.blob_local_root, settings.blob_public_base_url)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Creates the record and audit databases, the AuditLogger, the email
    sender and Notifier (also registered as the retry-exhaustion notifier),
    blob storage, and the token, OTP, contract, delivery, negotiation and
    signing services.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. Record store
    if str(settings.database_path) != ":memory:":
        settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    record_conn = init_record_db(settings.database_path)
    store = SQLiteRecordStore(record_conn)
    services["record_conn"] = record_conn
    services["store"] = store

    # b. Audit log
    if str(settings.audit_db_path) != ":memory:":
        settings.audit_db_path.parent.mkdir(parents=True, exist_ok=True)
    audit_conn = init_audit_db(settings.audit_db_path)
    audit_logger = AuditLogger(audit_conn)
    services["audit_conn"] = audit_conn
    services["audit_logger"] = audit_logger

    # c. Email and operator alerts
    sender = build_email_sender(settings)
    notifier = Notifier(sender, audit_logger=audit_logger, ops_email=settings.ops_email)
    services["email_sender"] = sender
    services["notifier"] = notifier
    if settings.ops_email:
        configure_error_notifier(notifier)
        logger.info("Error notifier configured for retry exhaustion alerts")

    # d. Blob storage
    storage = build_blob_storage(settings)
    services["blob_storage"] = storage

    # e. Domain services
    tokens = TokenService(store)
    otp = OtpVerifier(
        store,
        tokens,
        ttl_minutes=settings.otp_ttl_minutes,
        max_attempts=settings.otp_max_attempts,
        cooldown_seconds=settings.otp_resend_cooldown_seconds,
    )
    pipeline = ContractPipeline(
        store,
        tokens,
        ContractRenderer(),
        storage,
        audit_logger,
        notifier,
        public_app_url=settings.public_app_url,
        signing_token_ttl_days=settings.signing_token_ttl_days,
    )
    services["tokens"] = tokens
    services["otp"] = otp
    services["contract_pipeline"] = pipeline
    services["delivery"] = DeliveryService(store, pipeline, audit_logger)
    services["negotiation"] = NegotiationEngine(
        store,
        tokens,
        pipeline,
        audit_logger,
        notifier,
        public_app_url=settings.public_app_url,
        action_token_ttl_days=settings.action_token_ttl_days,
        uplift=settings.budget_uplift,
        low_barter_threshold=settings.low_barter_value_threshold,
        min_lead_days=settings.counter_min_lead_days,
    )
    services["signing"] = SigningWorkflow(
        store,
        tokens,
        otp,
        storage,
        audit_logger,
        notifier,
        public_app_url=settings.public_app_url,
        signing_token_ttl_days=settings.signing_token_ttl_days,
    )

    logger.info("Services initialized", blob_backend=settings.blob_backend)
    return services


def close_services(services: dict[str, Any]) -> None:
    """Close database connections and HTTP clients held by *services*."""
    for name in ("email_sender", "blob_storage"):
        close = getattr(services.get(name), "close", None)
        if close is not None:
            close()

    record_conn = services.pop("record_conn", None)
    if record_conn is not None:
        record_conn.close()
        logger.info("Record database connection closed")

    audit_conn = services.pop("audit_conn", None)
    if audit_conn is not None:
        close_audit_db(audit_conn)
        logger.info("Audit database connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: closes the databases and outbound HTTP clients.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    logger.info("FastAPI application starting")
    yield
    close_services(app.state.services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with the API router, health routes and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    settings: Settings = services.get("_settings") or get_settings()
    fastapi_app = FastAPI(title="Dealflow", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = settings

    fastapi_app.add_middleware(RequestIdMiddleware)
    register_error_handlers(fastapi_app)
    fastapi_app.include_router(api_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)

    if isinstance(services.get("blob_storage"), LocalBlobStorage):
        fastapi_app.mount(
            "/files",
            StaticFiles(directory=settings.blob_local_root, check_dir=False),
            name="files",
        )

    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Configure logging and Sentry
    2. Validate credentials
    3. Initialize services
    4. Serve the FastAPI app with uvicorn
    5. Close databases on exit
    """
    settings = get_settings()
    init_sentry(settings.sentry_dsn, environment=settings.sentry_environment)
    configure_logging(production=settings.production)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)

    try:
        await server.serve()
    finally:
        close_services(services)


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

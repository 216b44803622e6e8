"""Client Onboarding Screening API.

Screens onboarding applicants (individuals and legal entities) against
sanctions lists, PEP registers, company registries, tax-ID format rules,
email-domain checks and adverse media, then records the reviewer's
approve / request-info / reject decision and notifies the client.

Run with:
    python3 -m uvicorn onboarding.main:app --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onboarding.config import (
    Settings,
    load_entity_registry,
    load_pep_registers,
    load_sanctions_list,
    load_screening_config,
    require_token_secret,
)
from onboarding.decisions.processor import DecisionProcessor
from onboarding.decisions.tokens import DecisionTokenSigner
from onboarding.errors import OnboardingError
from onboarding.notify.mailer import CaseMailer
from onboarding.notify.notifier import LogNotifier, Notifier, SmtpNotifier
from onboarding.routes import cases, config, decisions, screening
from onboarding.screening.engine import ScreeningEngine, default_checks
from onboarding.screening.sources import (
    CountryPepRegistry,
    DnsOverHttpsResolver,
    HttpMediaSearch,
    NameListSource,
    RemoteListSource,
    ScreeningSources,
    StaticEntityRegistry,
)
from onboarding.storage.cases import CaseStore, ObjectStore
from onboarding.storage.filesystem import FileObjectStore
from onboarding.storage.memory import MemoryObjectStore
from onboarding.utils.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)


def build_sources(settings: Settings, client: httpx.AsyncClient) -> ScreeningSources:
    """Wire the local reference lists and the configured HTTP sources."""
    sanctions = [NameListSource("Consolidated", load_sanctions_list(settings.data_dir))]
    for name, url in settings.remote_sanctions_lists.items():
        sanctions.append(RemoteListSource(name, url, client, settings.remote_list_cache_seconds))

    return ScreeningSources(
        sanctions=sanctions,
        pep=CountryPepRegistry(load_pep_registers(settings.data_dir)),
        registry=StaticEntityRegistry(load_entity_registry(settings.data_dir)),
        mx_resolver=DnsOverHttpsResolver(settings.mx_resolver_url, client) if settings.mx_resolver_url else None,
        media=HttpMediaSearch(settings.media_search_url, client) if settings.media_search_url else None,
    )


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "filesystem":
        LOGGER.info(f"Using filesystem case store at {settings.storage_root}")
        return FileObjectStore(settings.storage_root)
    return MemoryObjectStore()


def build_notifier(settings: Settings) -> Notifier:
    if settings.smtp_host:
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.sender_email,
            username=settings.smtp_user,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            timeout=settings.http_timeout,
        )
    LOGGER.warning("No SMTP host configured, emails will only be logged")
    return LogNotifier()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load reference data and initialize the services on app state."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    LOGGER.info(f"Starting {settings.app_name} {settings.app_version}")

    signer = DecisionTokenSigner(require_token_secret(settings), settings.decision_token_ttl_seconds)
    screening_config = load_screening_config(settings.data_dir)
    case_store = CaseStore(build_object_store(settings))

    client = httpx.AsyncClient(timeout=settings.http_timeout)
    mailer = CaseMailer(build_notifier(settings), signer, settings.admin_email, settings.public_base_url)
    engine = ScreeningEngine(
        checks=default_checks(build_sources(settings, client)),
        case_store=case_store,
        config=screening_config,
        post_commit_hooks=[mailer.send_screening_report],
    )

    # Attach to app state for dependency injection in routes
    app.state.config = screening_config
    app.state.case_store = case_store
    app.state.signer = signer
    app.state.mailer = mailer
    app.state.engine = engine
    app.state.processor = DecisionProcessor(case_store, signer, mailer)

    yield

    LOGGER.info("Shutting down")
    await client.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    application = FastAPI(
        title=settings.app_name,
        description=(
            "KYC/AML screening for client onboarding. Checks sanctions, PEP "
            "registers, company registries, tax IDs, email domains and adverse "
            "media, and records reviewer decisions."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.state.settings = settings

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(OnboardingError)
    async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc.original_error)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request - {details}"})

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # Mount all API routers
    application.include_router(screening.router)
    application.include_router(decisions.router)
    application.include_router(cases.router)
    application.include_router(config.router)

    @application.get("/health")
    async def health_check() -> Dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from shortener.config import Settings
from shortener.errors import LinkUnavailableError, ShortenerError
from shortener.geo import GeoResolver
from shortener.schemas import ShortenRequest, ShortenResponse, StatsResponse
from shortener.service import LinkService
from shortener.store.base import LinkStore
from shortener.store.factory import build_store

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def get_service(request: Request) -> LinkService:
    return request.app.state.service


def create_app(
    settings: Settings | None = None,
    store: LinkStore | None = None,
    geo_resolver: GeoResolver | None = None,
) -> FastAPI:
    """
    Builds the HTTP app around one LinkService.

    With an explicit ``store`` the service is wired immediately. Otherwise the
    backend named by the settings is opened on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "service", None) is not None:
            yield
            return

        resolved = settings or Settings.from_env()
        configure_logging(resolved)
        link_store = build_store(resolved)
        app.state.service = LinkService(link_store, resolved, geo_resolver=geo_resolver)
        logger.info("Link service started with %s", type(link_store).__name__)
        try:
            yield
        finally:
            link_store.close()
            app.state.service = None

    app = FastAPI(title="URL Shortener", lifespan=lifespan)
    if store is not None:
        app.state.service = LinkService(store, settings or Settings(), geo_resolver=geo_resolver)

    @app.exception_handler(ShortenerError)
    async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        elif not isinstance(exc, LinkUnavailableError):
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server error"},
        )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/shorturl", response_model=ShortenResponse, status_code=status.HTTP_201_CREATED)
    def create_short_url(
        payload: ShortenRequest,
        service: LinkService = Depends(get_service),
    ) -> ShortenResponse:
        record = service.create_short_link(
            original_url=payload.url,
            validity_minutes=payload.validity,
            custom_code=payload.shortcode,
        )
        return ShortenResponse(
            original_url=record.original_url,
            short_code=record.short_code,
            short_url=service.short_url_for(record),
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_custom=record.is_custom,
        )

    @app.get("/shorturls/{code}", response_model=StatsResponse)
    def stats(code: str, service: LinkService = Depends(get_service)) -> StatsResponse:
        link_stats = service.get_stats(code)
        return StatsResponse(
            short_code=link_stats.short_code,
            original_url=link_stats.original_url,
            created_at=link_stats.created_at,
            expires_at=link_stats.expires_at,
            is_expired=link_stats.is_expired,
            clicks=link_stats.clicks,
            click_events=link_stats.click_events,
        )

    @app.get("/{code}")
    def redirect(
        code: str,
        request: Request,
        service: LinkService = Depends(get_service),
    ) -> RedirectResponse:
        """
        Redirect hot path: resolve, check expiry, record the click, then 302.
        """
        ip = request.client.host if request.client else None
        target = service.resolve_and_record_click(
            code,
            referrer=request.headers.get("referer"),
            client_ip=ip,
        )
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)

    return app


app = create_app()

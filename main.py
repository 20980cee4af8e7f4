import uvicorn
from loguru import logger

from config.base import get_settings
from core.infrastructure.logging import RequestTrackingMiddleware, setup_logging


def create_app():
    """Create and configure FastAPI application instance

    Sets up application lifespan events, middleware, exception handlers,
    and API routers.

    Returns
    -------
    FastAPI
        Deployment-ready FastAPI instance.
    """
    from contextlib import asynccontextmanager

    import httpx
    from fastapi import FastAPI, HTTPException
    from fastapi.exceptions import RequestValidationError, ResponseValidationError
    from pydantic import ValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    from authentication.application.rules import CloseSessionRule, OpenSessionRule
    from authentication.domain.exceptions import AuthenticationError
    from authentication.infrastructure.factory import (
        build_auth_service,
        build_http_client,
    )
    from core.infrastructure.exceptions.handler import global_exception_handler
    from notifications.domain.exceptions import NotificationActionError
    from notifications.infrastructure.factory import build_notification_provider

    @asynccontextmanager
    async def custom_lifespan(app):
        """Manage application startup and shutdown lifecycle.

        Builds the shared httpx client, session service and notification
        provider, opens the bootstrap session when an access token is
        configured, and tears everything down on shutdown so no stream task
        or connection outlives the application.

        Parameters
        ----------
        app : FastAPI
            FastAPI application instance.

        Yields
        ------
        None
            Control to application after startup, and before shutdown.

        Raises
        ------
        AuthenticationError
            If the configured bootstrap token carries no user ID.
        """
        setup_logging()
        settings = get_settings()

        logger.debug("🔧 Creating backend HTTP client...")
        http_client = build_http_client(settings)
        auth_service = build_auth_service(settings, http_client)
        notification_provider = build_notification_provider(
            settings, http_client, auth_service
        )

        app.state.http_client = http_client
        app.state.auth_service = auth_service
        app.state.notification_provider = notification_provider

        if settings.access_token:
            logger.debug("🔧 Opening bootstrap session from configured access token...")
            await OpenSessionRule(
                access_token=settings.access_token,
                auth_service=auth_service,
                notification_provider=notification_provider,
            ).execute()

        logger.info("🟢 Application startup completed.")
        logger.info(
            f"🚀✨ <green>Notification gateway is now running against {settings.api_base_url}</green>"
        )

        yield

        logger.debug("🔧 Starting shutdown cleanup...")

        await CloseSessionRule(
            auth_service=auth_service,
            notification_provider=notification_provider,
        ).execute()

        logger.debug("🔧 Closing backend HTTP client...")
        await http_client.aclose()

        logger.debug("👋 Application shutting down...")

    app = FastAPI(lifespan=custom_lifespan)

    app.add_middleware(RequestTrackingMiddleware)

    app.add_exception_handler(ValueError, global_exception_handler)
    app.add_exception_handler(AuthenticationError, global_exception_handler)
    app.add_exception_handler(NotificationActionError, global_exception_handler)
    app.add_exception_handler(httpx.HTTPError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(ValidationError, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(ResponseValidationError, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)

    from authentication.presentation import router as session_router
    from notifications.presentation import router as notification_router

    app.include_router(session_router)
    app.include_router(notification_router)

    return app


if __name__ == "__main__":
    """Application entry point for direct execution.

    Configures logging with Loguru and starts the Uvicorn server.
    """
    setup_logging()
    settings = get_settings()
    logger.debug(
        f"🟢 Starting notification gateway in '{settings.environment.upper()}' mode!"
    )
    uvicorn.run(
        "main:create_app",
        port=settings.server_port,
        reload=settings.debug,
        factory=True,
        log_config=None,
    )

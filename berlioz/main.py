from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from berlioz.config import get_settings
from berlioz.exceptions import AuthorizationError, PersistenceError
from berlioz.infra.logging_config import LoggingConfig, get_logger
from berlioz.routers import events_router, slack_oauth, webhooks

logger = get_logger("api")


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Failed to persist request"})


async def authorization_error_handler(
    request: Request, exc: AuthorizationError
) -> JSONResponse:
    logger.warning("Slack authorization failed: %s", exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    if not testing:
        LoggingConfig(settings.log_level)

    app = FastAPI(title=settings.app_name)

    app.include_router(webhooks.router)
    app.include_router(slack_oauth.router)
    app.include_router(events_router.router)

    app.add_exception_handler(PersistenceError, persistence_error_handler)
    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    add_pagination(app)
    return app


app = create_app()

"""
FastAPI Server for Local Development

Serves the survey relay on http://localhost:8000/submit so the survey page
can be developed against it without deploying the Lambda.

Set SURVEY_RELAY_DRY_RUN=1 to log rendered emails instead of calling Brevo.

Usage:
    uvicorn scripts.local_api_server:app --reload
    python -m scripts.local_api_server
"""

import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lambdas.submit_survey.handler import InboundRequest, RelayResponse, SubmissionRelay
from survey_relay.config import Settings, get_settings
from survey_relay.tools.brevo import EmailDispatcher, LoggingDispatcher

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


def _to_json_response(response: RelayResponse) -> JSONResponse:
    return JSONResponse(
        status_code=response.status_code,
        content=response.body,
        headers={k: v for k, v in response.headers.items() if k != "content-type"},
    )


def create_app(
    settings: Settings | None = None,
    *,
    dispatcher: EmailDispatcher | None = None,
) -> FastAPI:
    """
    Build the local app.

    Args:
        settings: Relay settings (default: loaded from the environment)
        dispatcher: Override the email dispatcher (default: Brevo, or a
            logging dispatcher when settings.dry_run is set)
    """
    settings = settings or get_settings()
    if dispatcher is None and settings.dry_run:
        dispatcher = LoggingDispatcher()

    relay = SubmissionRelay(settings, dispatcher=dispatcher)

    app = FastAPI(
        title="Survey Relay",
        description="Local development server for the survey submission relay",
    )

    # CORS configuration
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8888",
    ]
    if os.environ.get("CORS_ORIGINS"):
        origins.extend(
            o.strip() for o in os.environ["CORS_ORIGINS"].split(",") if o.strip()
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.api_route("/submit", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def submit(request: Request) -> JSONResponse:
        """Forward the request to the relay unchanged."""
        inbound = InboundRequest(
            method=request.method,
            headers=dict(request.headers),
            body=await request.body(),
        )
        return _to_json_response(relay.handle(inbound))

    @app.get("/health")
    async def health() -> dict:
        """Render mode and configuration status (no secrets)."""
        return {
            "status": "ok",
            "render_mode": settings.render_mode,
            "configured": settings.is_complete,
            "missing": settings.missing_required(),
            "dry_run": settings.dry_run,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    log.info("starting_local_api_server", host="0.0.0.0", port=8000)
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.responses import PlainTextResponse

from .sync import pipeline
from .utils.logging_utils import get_logger
from .utils.settings import ConfigError

log = get_logger("server")


def create_app(initialize: bool = True) -> FastAPI:
    """
    Build the trigger app. With `initialize`, the runtime is set up during
    startup unless one is already installed; a failure there leaves the app
    up with /healthz answering 503 so the platform can see why.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if initialize and pipeline.get_runtime() is None:
            try:
                pipeline.init_runtime()
            except ConfigError as e:
                log.error("%s", e)
        yield

    app = FastAPI(title="Gmail History Sync", version="0.1.0", lifespan=lifespan)

    @app.get("/healthz", response_class=PlainTextResponse, tags=["system"])
    def healthz() -> PlainTextResponse:
        if pipeline.get_runtime() is None:
            return PlainTextResponse(
                pipeline.startup_error() or "not initialized",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return PlainTextResponse("ok")

    @app.api_route("/", methods=["GET", "POST"], response_class=PlainTextResponse)
    def check_gmail_and_process() -> PlainTextResponse:
        log.info("Function started: Checking for new emails.")
        try:
            result = pipeline.run_sync()
        except Exception as e:
            log.exception("An error occurred: %s", e)
            return PlainTextResponse(
                f"An error occurred: {e}",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if not result.ok:
            log.error("An error occurred (%s): %s", result.error.kind.value, result.error.message)
            return PlainTextResponse(
                f"An error occurred: {result.error.message}",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        report = result.value
        for warning in report.warnings:
            log.warning("%s", warning)
        return PlainTextResponse(report.message, status_code=status.HTTP_200_OK)

    return app

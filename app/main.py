from fastapi import FastAPI
import datetime
import logging
import time

from Security.activity_logging import ActivityLoggingMiddleware
from Security.cors_security import add_cors
from Security.error_handling import register_error_handlers
from Security.rate_limiting import create_rate_limiters
from Security.request_id import RequestIdMiddleware
from Security.request_pipeline import SecurityPipelineMiddleware, build_default_pipeline
from Security.security_config import SECURITY_SETTINGS

from .database import engine, get_db, init_db
from .user_routes import router as users_router

logger = logging.getLogger("app")


def _session_dependency(session_factory):
    def get_session():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return get_session


def create_app(settings=None, session_factory=None):
    settings = dict(SECURITY_SETTINGS if settings is None else settings)
    started = time.monotonic()

    app = FastAPI(title="Secure Users API")
    app.state.settings = settings
    app.state.limiters = create_rate_limiters(settings)
    app.state.pipeline = build_default_pipeline(app.state.limiters, settings)

    app.include_router(users_router)
    if session_factory is not None:
        app.dependency_overrides[get_db] = _session_dependency(session_factory)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
        }

    # Starlette wraps in reverse order: the last one added runs first.
    app.add_middleware(
        SecurityPipelineMiddleware,
        pipeline=app.state.pipeline,
        trust_proxy=settings["TRUST_PROXY"],
    )
    if settings["ACTIVITY_LOG_ENABLED"]:
        app.add_middleware(ActivityLoggingMiddleware, log_file=settings["ACTIVITY_LOG_FILE"])
    app.add_middleware(RequestIdMiddleware)
    add_cors(app, settings["CORS_ORIGINS"])

    @app.on_event("startup")
    def startup_event():
        init_db(bind=getattr(session_factory, "kw", {}).get("bind") or engine)
        logger.info("Security pipeline: %s", " -> ".join(app.state.pipeline.names))

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        server_header=False,
    )

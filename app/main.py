"""
CloudEvents Gateway - authenticated CloudEvents ingestion service.

Features:
- Source token authentication for received CloudEvents
- CloudEvents webhook abuse protection handshake
- Forwarding of accepted events to the upstream events API
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import SERVICE_NAME, VERSION, ConfigurationError, Settings, load_settings
from .logging import setup_logging, get_logger
from .api.router import router
from .adapters.api_client import APIEventsClient
from .adapters.base import EventsClient
from .auth.token_filter import build_token_filter
from .auth.tokens import TokenRegistry, load_token_registry
from .interceptors import InterceptorChain
from .middleware import CorrelationIdMiddleware, MetricsMiddleware
from .metrics import Metrics
from .health import HealthChecker
from .services.forwarder import EventForwarder
from .services.handshake import HandshakeHandler

logger = get_logger()


def create_app(
    settings: Settings,
    registry: TokenRegistry,
    client: EventsClient,
    metrics: Metrics | None = None,
    handshake: HandshakeHandler | None = None,
) -> FastAPI:
    """
    Assemble the gateway application.

    Args:
        settings: Loaded settings
        registry: Populated source token registry
        client: Upstream events API client
        metrics: Metrics to record on (a fresh registry if omitted)
        handshake: Handshake handler (built from settings if omitted)
    """
    metrics = metrics or Metrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=VERSION,
            env=settings.ENV,
            auth_mode=registry.mode.value,
            payload_mode=settings.PAYLOAD_MODE.value,
            source_tokens=len(registry),
        )
        yield
        logger.info("service_stopping")
        metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)
        await client.close()

    app = FastAPI(
        title="CloudEvents Gateway",
        version=VERSION,
        description="Receives CloudEvents from authenticated sources and forwards them upstream",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.interceptors = InterceptorChain([build_token_filter(registry, metrics=metrics)])
    app.state.forwarder = EventForwarder(client, payload_mode=settings.PAYLOAD_MODE, metrics=metrics)
    app.state.handshake = handshake or HandshakeHandler(
        callback_delay=settings.HANDSHAKE_CALLBACK_DELAY,
        metrics=metrics,
    )

    # Added last runs first: correlation ID is bound before metrics log.
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(router)

    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    health_checker = HealthChecker(token_count=len(registry))

    @app.get("/healthz")
    async def healthz():
        """Liveness probe."""
        return health_checker.liveness()

    @app.get("/healthz/ready")
    async def healthz_ready():
        """
        Readiness probe.

        Returns:
            200: Service is ready to handle traffic
            503: Service is not ready
        """
        metrics.update_system_metrics()
        result = health_checker.readiness()
        status_code = 200 if result["status"] == "ready" else 503
        return JSONResponse(content=result, status_code=status_code)

    return app


def build_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the gateway from environment configuration.

    Raises:
        ConfigurationError: If settings or the source token file are invalid
    """
    settings = settings or load_settings()
    registry = load_token_registry(settings.SOURCE_TOKENS_PATH, settings.AUTH_MODE)
    client = APIEventsClient(
        address=settings.API_ADDRESS,
        token=settings.API_TOKEN.get_secret_value(),
        allow_insecure_connections=settings.API_IGNORE_CERT_WARNINGS,
        timeout=settings.API_TIMEOUT,
    )
    return create_app(settings, registry, client)


def main():
    import uvicorn

    try:
        settings = load_settings()
        setup_logging(json_output=settings.LOG_JSON, level=settings.LOG_LEVEL)
        app = build_app(settings)
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        raise SystemExit(1)

    logger.info("starting_gateway", version=VERSION, port=settings.PORT, tls=settings.TLS_ENABLED)
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        ssl_certfile=str(settings.TLS_CERT_PATH) if settings.TLS_ENABLED else None,
        ssl_keyfile=str(settings.TLS_KEY_PATH) if settings.TLS_ENABLED else None,
        log_config=None,
    )


if __name__ == "__main__":
    main()

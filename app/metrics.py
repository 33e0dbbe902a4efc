"""
Prometheus metrics for the CloudEvents gateway.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os
from .config import SERVICE_NAME, VERSION


class Metrics:
    """
    Centralized metrics for the CloudEvents gateway.
    """

    def __init__(self, service_name: str = SERVICE_NAME, version: str = VERSION, registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Gateway Metrics
        self.events_received_total = Counter(
            "gateway_events_received_total",
            "CloudEvents received, by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.auth_denied_total = Counter(
            "gateway_auth_denied_total",
            "Requests denied by the token filter, by reason",
            ["reason"],
            registry=self.registry,
        )

        self.forward_failures_total = Counter(
            "gateway_forward_failures_total",
            "Events the upstream API failed to accept",
            registry=self.registry,
        )

        self.handshakes_total = Counter(
            "gateway_handshakes_total",
            "Abuse protection handshakes, by mode",
            ["mode"],
            registry=self.registry,
        )

        self.handshake_callbacks_total = Counter(
            "gateway_handshake_callbacks_total",
            "Abuse protection handshake callbacks, by method and outcome",
            ["method", "outcome"],
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_memory_bytes = Gauge(
            "gateway_process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "gateway_process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            process = psutil.Process(os.getpid())
            self.process_memory_bytes.labels(service=self.service_name).set(process.memory_info().rss)
            try:
                self.process_open_fds.labels(service=self.service_name).set(process.num_fds())
            except AttributeError:
                # num_fds() not available on all platforms
                pass
        except psutil.Error:
            pass

    def record_event(self, outcome: str):
        """Record the outcome of an event submission."""
        self.events_received_total.labels(outcome=outcome).inc()

    def record_auth_denied(self, reason: str):
        self.auth_denied_total.labels(reason=reason).inc()

    def record_forward_failure(self):
        self.forward_failures_total.inc()

    def record_handshake(self, mode: str):
        self.handshakes_total.labels(mode=mode).inc()

    def record_handshake_callback(self, method: str, outcome: str):
        self.handshake_callbacks_total.labels(method=method, outcome=outcome).inc()

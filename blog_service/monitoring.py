"""Prometheus metrics instrumentation."""

from prometheus_fastapi_instrumentator import Instrumentator
from fastapi import FastAPI


def setup_monitoring(app: FastAPI) -> None:
    """Instrument request latency/counts and expose them at /metrics.

    Collection is on only when ENABLE_METRICS=true in the environment.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        env_var_name="ENABLE_METRICS",
        excluded_handlers=["/metrics", "/health", "/favicon.ico"],
        should_instrument_requests_inprogress=True,
        inprogress_name="blog_http_requests_inprogress",
        inprogress_labels=True,
    )
    instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

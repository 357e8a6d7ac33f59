# deckshare/utils/telemetry.py
# OpenTelemetry setup shared by the API process and the arq worker

from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

_provider_installed = False
_instrumented: set[int] = set()


def _install_provider(service_name: str) -> None:
    global _provider_installed
    if _provider_installed:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    _provider_installed = True


def init_otel(app=None, engine=None, service_name: str = "deckshare"):
    """Install the tracer provider once per process and instrument what is passed.

    ``engine`` is the SQLAlchemy AsyncEngine; its sync core gets the hooks.
    Instrumenting the same object twice is a no-op.
    """
    _install_provider(service_name)

    if app is not None and id(app) not in _instrumented:
        FastAPIInstrumentor.instrument_app(app)
        _instrumented.add(id(app))

    if engine is not None and id(engine) not in _instrumented:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
        _instrumented.add(id(engine))

    return trace.get_tracer(service_name)

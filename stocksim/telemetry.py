"""OpenTelemetry metrics and logs for the stock simulator."""

import logging
from decimal import Decimal

from opentelemetry import metrics
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from stocksim._version import VERSION
from stocksim.config import OTLP_ENABLED, OTLP_ENDPOINT, OTLP_EXPORT_INTERVAL


# Module-level state
_initialized = False
_meter = None
_log_handler = None

# Counters (cumulative)
_trades_total = None
_trade_value_total = None
_trades_rejected_total = None
_price_failures_total = None
_competitions_created_total = None
_scheduler_runs_total = None


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry metrics and log export.

    Returns True if telemetry was initialized, False if disabled.
    """
    global _initialized, _meter, _log_handler
    global _trades_total, _trade_value_total, _trades_rejected_total
    global _price_failures_total, _competitions_created_total, _scheduler_runs_total

    if _initialized:
        return True

    if not OTLP_ENABLED:
        return False

    resource = Resource.create({
        "service.name": "stocksim",
        "service.version": VERSION,
    })

    exporter = OTLPMetricExporter(endpoint=OTLP_ENDPOINT)
    reader = PeriodicExportingMetricReader(
        exporter,
        export_interval_millis=OTLP_EXPORT_INTERVAL,
    )
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter("stocksim", VERSION)

    _trades_total = _meter.create_counter(
        "stocksim_trades_total",
        description="Total number of trades applied to a ledger",
        unit="1",
    )

    _trade_value_total = _meter.create_counter(
        "stocksim_trade_value_total",
        description="Total cash value of applied trades",
        unit="currency",
    )

    _trades_rejected_total = _meter.create_counter(
        "stocksim_trades_rejected_total",
        description="Trades rejected before any state change",
        unit="1",
    )

    _price_failures_total = _meter.create_counter(
        "stocksim_price_failures_total",
        description="Price lookups that failed or timed out",
        unit="1",
    )

    _competitions_created_total = _meter.create_counter(
        "stocksim_competitions_created_total",
        description="Competitions created, by source",
        unit="1",
    )

    _scheduler_runs_total = _meter.create_counter(
        "stocksim_scheduler_runs_total",
        description="Quick Pics scheduler runs, by outcome",
        unit="1",
    )

    # === LOGS ===
    logs_endpoint = OTLP_ENDPOINT.replace("/v1/metrics", "/v1/logs")
    log_exporter = OTLPLogExporter(endpoint=logs_endpoint)
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    set_logger_provider(logger_provider)

    _log_handler = LoggingHandler(
        level=logging.INFO,
        logger_provider=logger_provider,
    )

    _initialized = True
    return True


def get_log_handler() -> LoggingHandler | None:
    """Get the OTLP logging handler to attach to Python loggers."""
    return _log_handler


def is_enabled() -> bool:
    """Check if telemetry is initialized and enabled."""
    return _initialized


# --- Counter update functions ---

def record_trade(account_kind: str, side: str, symbol: str, quantity: int, price: Decimal) -> None:
    """Record a trade applied to a ledger."""
    if not _initialized:
        return

    attributes = {"account_kind": account_kind, "side": side, "symbol": symbol}
    _trades_total.add(1, attributes)
    _trade_value_total.add(float(price * quantity), attributes)


def record_trade_rejected(account_kind: str, reason: str) -> None:
    """Record a trade rejected by a ledger rule."""
    if not _initialized:
        return

    _trades_rejected_total.add(1, {"account_kind": account_kind, "reason": reason})


def record_price_failure(symbol: str) -> None:
    """Record a failed price lookup."""
    if not _initialized:
        return

    _price_failures_total.add(1, {"symbol": symbol})


def record_competition_created(source: str) -> None:
    """Record a competition being created ("manual" or "scheduler")."""
    if not _initialized:
        return

    _competitions_created_total.add(1, {"source": source})


def record_scheduler_run(outcome: str) -> None:
    """Record a scheduler run ("created", "skipped" or "failed")."""
    if not _initialized:
        return

    _scheduler_runs_total.add(1, {"outcome": outcome})

"""
Prometheus metrics blueprint.

Request latency per endpoint plus counters for the sale-construction flow:
draft lifecycle, serial pool fetches and submissions to the inventory API.
/metrics is unauthenticated; keep it on the internal network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry, REGISTRY, CONTENT_TYPE_LATEST,
    generate_latest, multiprocess
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY


def _metric(kind, name, documentation, labels=(), **kwargs):
    # In multiprocess mode values go to files, not to a registry
    return kind(f'backoffice_{name}', documentation, list(labels),
                registry=None if MULTIPROCESS_MODE else registry, **kwargs)


requests_total = _metric(Counter, 'requests_total', 'HTTP requests served',
                         ('method', 'endpoint', 'http_status'))
request_seconds = _metric(Histogram, 'request_seconds', 'HTTP request latency',
                          ('method', 'endpoint'),
                          buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0))
requests_in_flight = _metric(Gauge, 'requests_in_flight', 'HTTP requests being processed',
                             **({'multiprocess_mode': 'livesum'} if MULTIPROCESS_MODE else {}))

draft_events_total = _metric(Counter, 'draft_events_total',
                             'Draft lifecycle events (saved, restored, submitted, cleared, discarded_*)',
                             ('event',))
serial_pool_fetches_total = _metric(Counter, 'serial_pool_fetches_total',
                                    'Available-serial pool fetches by outcome', ('outcome',))
sale_submissions_total = _metric(Counter, 'sale_submissions_total',
                                 'Sale submissions by outcome', ('outcome',))
stock_additions_total = _metric(Counter, 'stock_additions_total',
                                'Stock addition submissions by outcome', ('outcome',))


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g._metrics_started = time.perf_counter()
        requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started = g.pop('_metrics_started', None)
        if started is None:
            return response
        endpoint = request.endpoint or 'unknown'
        request_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
        requests_total.labels(request.method, endpoint, response.status_code).inc()
        requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)

"""
Logging, request metrics and health checks.

Provides:
- Structured JSON logging (LOG_FORMAT=json) or plain text logging
- Correlation IDs and response timing headers
- Deep health check reporting provider configuration and cache state
"""

import json
import logging
import threading
import time
import uuid
from collections import Counter, deque
from datetime import datetime, timezone
from statistics import median
from typing import Any, Deque, Dict, Optional

from flask import Flask, current_app, g, has_request_context, jsonify, request

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class JSONLogFormatter(logging.Formatter):
    """One JSON object per log line, with the request correlation ID when present."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        correlation_id = getattr(record, 'correlation_id', None)
        if not correlation_id:
            if has_request_context():
                correlation_id = getattr(g, 'correlation_id', None)
        if correlation_id:
            log_entry['correlation_id'] = correlation_id

        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
            }

        return json.dumps(log_entry)


def configure_logging(app: Flask):
    """Configure root and app logging from LOG_FORMAT / LOG_LEVEL."""
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    handler = logging.StreamHandler()
    if str(app.config.get('LOG_FORMAT', 'text')).lower() == 'json':
        handler.setFormatter(JSONLogFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))

    logging.root.handlers = [handler]
    logging.root.setLevel(log_level)
    app.logger.handlers = []
    app.logger.propagate = True
    app.logger.setLevel(log_level)


# ---------------------------------------------------------------------------
# Request Metrics
# ---------------------------------------------------------------------------

class RequestMetrics:
    """
    Request counters for the monitoring endpoint.

    Besides per-endpoint latency it counts the error codes the API answered
    with, so a provider outage shows up as a run of RETRIEVAL_ERROR.
    """

    def __init__(self, latency_window: int = 500):
        self._lock = threading.Lock()
        self._latency_window = latency_window
        self._started = time.monotonic()
        self.requests_by_endpoint: Counter = Counter()
        self.error_codes: Counter = Counter()
        self._latencies: Dict[str, Deque[float]] = {}

    def record(self, endpoint: str, latency_ms: float, error_code: Optional[str] = None):
        with self._lock:
            self.requests_by_endpoint[endpoint] += 1
            if error_code:
                self.error_codes[error_code] += 1
            samples = self._latencies.setdefault(endpoint, deque(maxlen=self._latency_window))
            samples.append(latency_ms)

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            total = sum(self.requests_by_endpoint.values())
            failed = sum(self.error_codes.values())
            latencies = {
                endpoint: {
                    'median_ms': round(median(samples), 2),
                    'max_ms': round(max(samples), 2),
                    'samples': len(samples),
                }
                for endpoint, samples in self._latencies.items() if samples
            }
            return {
                'uptime_seconds': round(time.monotonic() - self._started),
                'total_requests': total,
                'failed_requests': failed,
                'error_codes': dict(self.error_codes),
                'endpoints': dict(self.requests_by_endpoint),
                'latencies': latencies,
            }


def _error_code(response) -> Optional[str]:
    # API handlers put their envelope code on g; anything else is keyed by status
    code = getattr(g, 'error_code', None)
    if code:
        return code
    if response.status_code >= 400:
        return f"HTTP_{response.status_code}"
    return None


def register_request_metrics(app: Flask, metrics: RequestMetrics):
    """Attach correlation IDs and timing headers, and feed RequestMetrics."""

    @app.before_request
    def start_timer():
        g.request_started = time.monotonic()
        g.correlation_id = (
            request.headers.get('X-Correlation-ID')
            or request.headers.get('X-Request-ID')
            or uuid.uuid4().hex
        )

    @app.after_request
    def record_metrics(response):
        started = getattr(g, 'request_started', None)
        if started is None:
            return response
        latency_ms = (time.monotonic() - started) * 1000
        metrics.record(request.endpoint or request.path, latency_ms, _error_code(response))
        response.headers['X-Correlation-ID'] = g.correlation_id
        response.headers['X-Response-Time'] = f"{latency_ms:.2f}ms"
        return response


# ---------------------------------------------------------------------------
# Deep Health Checks
# ---------------------------------------------------------------------------

def check_appsheet_config(config) -> Dict[str, Any]:
    if not config.get('APPSHEET_ACCESS_KEY'):
        return {'status': 'not_configured', 'message': 'No APPSHEET_ACCESS_KEY set'}
    return {'status': 'configured', 'app_id': config.get('APPSHEET_APP_ID'), 'table': config.get('APPSHEET_TABLE')}


def check_sheets_config(config) -> Dict[str, Any]:
    if not config.get('SHEET_ID'):
        return {'status': 'not_configured', 'message': 'No SHEET_ID set'}
    return {'status': 'configured', 'sheet': config.get('USAGE_SHEET_NAME')}


def run_deep_health_check(config, cache) -> Dict[str, Any]:
    """Report provider configuration and cache state without calling the providers."""
    checks = {
        'appsheet': check_appsheet_config(config),
        'sheets': check_sheets_config(config),
    }
    overall = 'healthy' if all(c['status'] == 'configured' for c in checks.values()) else 'degraded'
    return {
        'status': overall,
        'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        'checks': checks,
        'cache': cache.status(),
    }


def register_monitoring(app: Flask):
    """Register logging, metrics middleware and monitoring endpoints."""
    configure_logging(app)
    metrics = RequestMetrics()
    register_request_metrics(app, metrics)

    @app.route('/health/deep', methods=['GET'])
    def deep_health_check():
        result = run_deep_health_check(current_app.config, current_app.extensions['record_cache'])
        status_code = 200 if result['status'] == 'healthy' else 503
        return jsonify(result), status_code

    @app.route('/api/monitoring/metrics', methods=['GET'])
    def get_metrics():
        return jsonify(metrics.get_summary())

    logger.info("Monitoring endpoints registered: /health/deep, /api/monitoring/metrics")

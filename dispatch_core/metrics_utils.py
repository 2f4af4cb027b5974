import os
import threading

from prometheus_client import Counter, start_http_server

# Counters live in the process-global registry, so the server and counters
# are created at most once no matter how many dispatchers exist.
_metrics = None
_metrics_lock = threading.Lock()


def _disabled():
    return {
        'enabled': False,
        'sent': None,
        'failed': None,
        'skipped': None,
    }


def init_metrics(logger):
    """Initialize Prometheus metrics if configured via env.

    Returns a dict with keys: enabled, sent, failed, skipped. Every caller
    in the process gets the same counters.
    """
    global _metrics
    with _metrics_lock:
        if _metrics is not None:
            return dict(_metrics)
        port = os.getenv('METRICS_PORT')
        if not port:
            return _disabled()
        addr = os.getenv('METRICS_ADDR', '0.0.0.0')
        try:
            start_http_server(int(port), addr=addr)
        except Exception as e:
            logger.warning(f"Failed to start metrics: {e}")
            return _disabled()
        _metrics = {
            'enabled': True,
            'sent': Counter('github_dispatch_sent_total', 'Dispatches acknowledged by GitHub'),
            'failed': Counter('github_dispatch_failed_total', 'Dispatches that failed'),
            'skipped': Counter('github_dispatch_skipped_total', 'Batches skipped for missing configuration'),
        }
        logger.info(f"Prometheus metrics server on {addr}:{port}")
        return dict(_metrics)


def inc(counter) -> None:
    if counter is not None:
        counter.inc()

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys callers attach via ``extra=`` that belong in structured output.
CONTEXT_KEYS = ('event_type', 'content_id', 'content_name')


class JSONFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            'ts': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f') + 'Z',
            'level': record.levelname,
            'msg': record.getMessage(),
            'logger': record.name,
        }
        for key in CONTEXT_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging() -> logging.Logger:
    """Configure root logging from LOG_LEVEL, LOG_FORMAT and LOG_DIR."""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    handlers = [logging.StreamHandler(sys.stdout)]
    file_error = None
    log_dir = os.getenv('LOG_DIR')
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(log_dir, 'github_dispatch.log')))
        except Exception as e:
            file_error = e

    fmt = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    if os.getenv('LOG_FORMAT', 'plain').lower() == 'json':
        fmt = JSONFormatter()
    for h in handlers:
        h.setFormatter(fmt)
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=handlers,
    )
    if file_error is not None:
        logging.getLogger(__name__).warning(f"File logging disabled, cannot write to {log_dir}: {file_error}")
    return logging.getLogger('github_dispatch')

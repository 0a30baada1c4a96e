"""
Structured Logging Configuration

One JSON object per line in production, plain text in development. Calendar
events (blocks, feed syncs, tokens) are logged through ``StructuredLogger``
helpers so every record names the entity it concerns.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar('request_id', default='')

# Attributes StructuredLogger attaches to a LogRecord
_CONTEXT_FIELDS = ("entity_type", "entity_id", "vehicle_id", "duration_ms", "fields")


class JSONFormatter(logging.Formatter):
    
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with one helper per calendar event.
    
    Keeps the caller's ``extra`` instead of replacing it with the adapter's.
    """
    
    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs
    
    def _event(
        self,
        level: int,
        msg: str,
        entity_type: str,
        entity_id: str,
        vehicle_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **fields
    ):
        self.log(level, msg, extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "vehicle_id": vehicle_id,
            "duration_ms": duration_ms,
            "fields": fields or None,
        })
    
    def block_created(self, block_id: str, vehicle_id: str, start_date, end_date):
        self._event(
            logging.INFO,
            f"Manual block created: {start_date}..{end_date}",
            "manual_block",
            block_id,
            vehicle_id=vehicle_id
        )
    
    def blocks_cleared(self, scope: str, scope_id: str, removed: int):
        self._event(
            logging.INFO,
            f"Cleared {removed} manual blocks ({scope})",
            scope,
            scope_id,
            removed=removed
        )
    
    def feed_synced(self, feed_id: str, result: Dict[str, int], duration_ms: float):
        self._event(
            logging.INFO,
            "Feed synced: +{added} ~{updated} -{removed} ={unchanged} skipped={skipped}".format(**result),
            "external_feed",
            feed_id,
            duration_ms=duration_ms,
            **result
        )
    
    def feed_sync_failed(self, feed_id: str, error: Exception, duration_ms: float):
        self._event(
            logging.WARNING,
            f"Feed sync failed ({error.__class__.__name__}): {error}",
            "external_feed",
            feed_id,
            duration_ms=duration_ms,
            error_type=error.__class__.__name__
        )
    
    def token_issued(self, vehicle_id: str, rotated: bool):
        self._event(
            logging.INFO,
            "Feed token rotated" if rotated else "Feed token issued",
            "vehicle",
            vehicle_id,
            vehicle_id=vehicle_id,
            rotated=rotated
        )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Install a single stdout handler on the root logger.
    
    ``include_uvicorn`` is off for ``worker.py``, which runs without a server.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    
    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s [%(name)s] %(message)s'
        ))
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]
    
    if include_uvicorn:
        for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            logging.getLogger(logger_name).handlers = [handler]
    
    # Third-party loggers
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str):
    request_id_var.set(request_id)


def clear_request_context():
    request_id_var.set('')

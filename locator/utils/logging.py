"""Structured logging utilities."""
import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional


def setup_logging(level: str = "INFO"):
    """Setup structured JSON logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(message)s',
        handlers=[logging.StreamHandler()]
    )


def log_structured(level: str, message: str, **kwargs):
    """
    Log structured JSON message.
    
    Args:
        level: Log level (debug, info, warning, error, etc.)
        message: Log message
        **kwargs: Additional structured fields
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level.upper(),
        "message": message,
        **kwargs
    }
    
    logger = logging.getLogger("locator")
    getattr(logger, level.lower(), logger.info)(json.dumps(log_entry, default=str))


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None):
    """
    Log an exception with its traceback and call-site context.
    
    Args:
        error: The exception being reported
        context: Extra fields such as module, function and query parameters
    """
    log_structured(
        "error",
        str(error),
        error_type=type(error).__name__,
        traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        context=context or {},
    )

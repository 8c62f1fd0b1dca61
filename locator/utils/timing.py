"""Elapsed-time logging for store round-trips and index builds."""
import time
from functools import wraps
from typing import Callable
from locator.utils.logging import log_structured


def time_function(func: Callable) -> Callable:
    """Log the wall time of each call at debug level, keyed by function name."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            log_structured(
                "debug",
                f"Function {func.__name__} executed",
                function=func.__name__,
                elapsed_seconds=time.perf_counter() - start
            )
    return wrapper


class Timer:
    """
    Times one store operation.

    On exit a debug entry carries the operation name, elapsed seconds,
    whether the block raised, and any extra fields; the exception itself
    is not suppressed.
    """
    
    def __init__(self, operation: str, **fields):
        """
        Args:
            operation: Store operation name, e.g. ``search`` or ``admin_candidates``
            **fields: Extra fields logged with the timing entry
        """
        self.operation = operation
        self.fields = fields
        self.start = None
        self.elapsed = None
    
    def __enter__(self):
        self.start = time.perf_counter()
        return self
    
    def __exit__(self, exc_type, exc, tb):
        self.elapsed = time.perf_counter() - self.start
        log_structured(
            "debug",
            f"Operation {self.operation} completed",
            operation=self.operation,
            elapsed_seconds=self.elapsed,
            failed=exc_type is not None,
            **self.fields
        )

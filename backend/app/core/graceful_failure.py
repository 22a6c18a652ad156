"""
Best-effort execution helpers.

A submission is acknowledged once it has been validated and scored. Writing
the submission record and folding the score into the population aggregate
happen afterwards, and a storage outage there is logged, not raised:

    with graceful_failure("update population statistics", logger):
        engine.ingest(score)

    @graceful_failure_decorator("read population statistics")
    def _read_snapshot(self):
        ...
"""

import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, Optional, TypeVar

T = TypeVar("T")


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Run the ``with`` body, logging and suppressing any ``Exception``.

    Args:
        operation_name: Verb phrase used in the log line,
            e.g. "store submission record" logs "Failed to store submission record".
        logger: Logger that receives the failure.
        log_level: Level of the failure line. Defaults to WARNING.
        exc_info: Attach the traceback to the log line.
        context: Key/value pairs appended to the message, such as the session id.
    """
    try:
        yield
    except Exception as e:
        details = ""
        if context:
            details = " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        logger.log(
            log_level, f"Failed to {operation_name}{details}: {e}", exc_info=exc_info
        )


class GracefulFailureDecorator:
    """Decorator form of :func:`graceful_failure`.

    The wrapped callable returns ``default`` when it raises. Without an
    explicit logger, failures go to the logger of the decorated function's
    module.
    """

    def __init__(
        self,
        operation_name: str,
        *,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.WARNING,
        exc_info: bool = False,
        default: Any = None,
    ):
        self.operation_name = operation_name
        self._logger = logger
        self.log_level = log_level
        self.exc_info = exc_info
        self.default = default

    def __call__(self, func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
            with graceful_failure(
                self.operation_name,
                self._logger or logging.getLogger(func.__module__),
                log_level=self.log_level,
                exc_info=self.exc_info,
            ):
                return func(*args, **kwargs)
            return self.default

        return wrapper


graceful_failure_decorator = GracefulFailureDecorator

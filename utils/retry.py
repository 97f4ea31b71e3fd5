"""
Reel Batch - Retry and Fallback Logic
Exponential backoff for flaky stages and ordered fallback chains
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, Any, List, Sequence
from .logger import get_logger


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
    on_retry: Optional[Callable[[Exception, int], None]] = None


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter"""
    delay = min(
        config.initial_delay * (config.exponential_base ** attempt),
        config.max_delay
    )

    if config.jitter:
        delay = delay * (0.5 + random.random())

    return delay


def retry_operation(
    operation: Callable,
    *args,
    config: Optional[RetryConfig] = None,
    category: str = "RETRY",
    **kwargs
) -> Any:
    """
    Retry an operation with the given configuration.

    Usage:
        result = retry_operation(
            download_video,
            "https://www.tiktok.com/@user/video/123",
            config=RetryConfig(max_attempts=2),
            category="DOWNLOAD"
        )
    """
    config = config or RetryConfig()
    logger = get_logger()
    last_error = None

    for attempt in range(max(config.max_attempts, 1)):
        try:
            return operation(*args, **kwargs)
        except config.retryable_exceptions as e:
            last_error = e

            if attempt < config.max_attempts - 1:
                delay = calculate_delay(attempt, config)
                logger.warning(category, f"Attempt {attempt + 1}/{config.max_attempts} failed", {
                    "error": str(e),
                    "retry_delay": delay
                })

                if config.on_retry:
                    config.on_retry(e, attempt + 1)

                time.sleep(delay)
            elif config.max_attempts > 1:
                logger.warning(category, f"All {config.max_attempts} attempts failed", {
                    "final_error": str(e)
                })

    raise last_error


class FallbackError(Exception):
    """Raised when every option of a fallback chain failed"""

    def __init__(self, label: str, errors: List[Tuple[str, Exception]]):
        self.label = label
        self.errors = errors
        if errors:
            details = "; ".join(f"{name}: {err}" for name, err in errors)
        else:
            details = "no options available"
        super().__init__(f"All {label} options failed ({details})")


def first_success(
    options: Sequence[Tuple[str, Callable[[], Any]]],
    label: str = "fallback",
    category: str = "RETRY",
    error_cls: Type[FallbackError] = FallbackError
) -> Any:
    """
    Try each (name, thunk) in order and return the first result.

    Every failure is logged as a warning; when nothing succeeds an
    error_cls carrying each option's exception is raised.
    """
    logger = get_logger()
    errors: List[Tuple[str, Exception]] = []

    for name, thunk in options:
        try:
            return thunk()
        except Exception as e:
            errors.append((name, e))
            logger.warning(category, f"{label}: {name} failed, trying next option", {
                "error": str(e)
            })

    raise error_cls(label, errors)

"""Context variables injected into every log record."""

from contextvars import ContextVar
from typing import Dict, Optional

_worker_id: ContextVar[Optional[str]] = ContextVar("worker_id", default=None)
_stage: ContextVar[Optional[str]] = ContextVar("stage", default=None)
_domain: ContextVar[Optional[str]] = ContextVar("domain", default=None)


def set_log_context(
    worker_id: Optional[str] = None,
    stage: Optional[str] = None,
    domain: Optional[str] = None,
) -> None:
    """
    Set log context for the current task.

    Only the provided values are updated; others keep their current value.
    """
    if worker_id is not None:
        _worker_id.set(worker_id)
    if stage is not None:
        _stage.set(stage)
    if domain is not None:
        _domain.set(domain)


def get_log_context() -> Dict[str, Optional[str]]:
    """Return the current log context as a dict."""
    return {
        "worker_id": _worker_id.get(),
        "stage": _stage.get(),
        "domain": _domain.get(),
    }


def clear_log_context() -> None:
    """Reset all context values."""
    _worker_id.set(None)
    _stage.set(None)
    _domain.set(None)

"""Request and job context management using contextvars.

HTTP requests get a request ID (and a user ID once authenticated); work queue
jobs get a job ID. Anything logged while the context is set carries these
values without passing them around explicitly.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
job_id_var: ContextVar[str | None] = ContextVar("job_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if needed."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_job_id() -> str | None:
    """Get the ID of the work queue job being processed."""
    return job_id_var.get()


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    job_id = get_job_id()
    if job_id:
        context["job_id"] = job_id

    return context


def clear_context() -> None:
    """Clear all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    job_id_var.set(None)


class JobContext:
    """Context manager binding a work queue job ID for its duration.

    Usage:
        with JobContext(job.job_id):
            logger.info("job_started")  # includes job_id
    """

    def __init__(self, job_id: str | UUID) -> None:
        self.job_id = str(job_id)
        self._token: Token[str | None] | None = None

    def __enter__(self) -> "JobContext":
        self._token = job_id_var.set(self.job_id)
        return self

    def __exit__(self, *_: object) -> None:
        if self._token is not None:
            job_id_var.reset(self._token)
            self._token = None

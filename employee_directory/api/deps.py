from fastapi import Request

from employee_directory.core.config import get_settings
from employee_directory.core.context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    """The application's ServiceContext, created on first use if startup did not run."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        context = ServiceContext(get_settings())
        request.app.state.context = context
    return context

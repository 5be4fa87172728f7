"""Single-owner gate wrapped around every mutating registry operation."""
from __future__ import annotations

import logging

from .errors import UnauthorizedCallerError
from .logging import CallContext

logger = logging.getLogger(__name__)


def is_owner(caller: str, owner: str) -> bool:
    return caller == owner


def guard_mutation(
    operation: str,
    caller: str,
    owner: str,
    context: CallContext,
    *,
    reject: bool = False,
) -> bool:
    """Return ``True`` when ``caller`` may run ``operation``.

    A denied call is logged and reported as ``False`` so the entry point can
    return without touching state. With ``reject`` the denial is raised as
    :class:`UnauthorizedCallerError` instead.
    """

    if is_owner(caller, owner):
        return True
    context.warning(
        logger,
        f"{operation}(): rejected caller {caller}",
        event="access.denied",
        rejected_caller=caller,
    )
    if reject:
        raise UnauthorizedCallerError(operation, caller)
    return False


__all__ = ["guard_mutation", "is_owner"]

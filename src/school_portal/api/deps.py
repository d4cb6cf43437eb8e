"""Request dependencies: acting user, role gates and workflow services."""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from school_portal.services.workflow import WorkflowServices
from school_portal.services.workflow.schemas import Actor

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "super_admin")
STAFF_ROLES = ("teacher", "admin", "super_admin")


def normalize_role(role: str | None) -> str:
    """Lower-case a role and unify separators ("Super-Admin" -> "super_admin")."""
    return (role or "").strip().lower().replace("-", "_").replace(" ", "_")


async def get_current_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the acting user from identity headers set by the gateway.

    Raises:
        HTTPException: 401 if the user id is missing
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return Actor(
        id=user_id,
        name=(x_user_name or "").strip() or user_id,
        role=normalize_role(x_user_role) or "guest",
    )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_roles(*roles: str):
    """Dependency factory for role-based access control.

    Args:
        roles: Allowed roles (the actor must have one of them)

    Returns:
        Dependency function
    """
    allowed = {normalize_role(role) for role in roles}

    async def role_checker(actor: CurrentActor) -> Actor:
        if actor.role not in allowed:
            logger.info(
                f"Denied {actor.id} with role {actor.role}",
                extra={"actor_id": actor.id, "required": sorted(allowed)},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of roles: {', '.join(sorted(allowed))}",
            )
        return actor

    return role_checker


def get_services(request: Request) -> WorkflowServices:
    """Workflow services built at startup."""
    services = getattr(request.app.state, "workflows", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow services are not initialised",
        )
    return services


Services = Annotated[WorkflowServices, Depends(get_services)]

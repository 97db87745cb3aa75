"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from scene_studio.db.session import get_session
from scene_studio.services.lifecycle import ProjectLifecycle

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


def get_current_user(
    x_user_id: Annotated[str | None, Header(max_length=64)] = None,
) -> str:
    """Caller identity, as forwarded by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()


CurrentUserDep = Annotated[str, Depends(get_current_user)]


def get_lifecycle(session: SessionDep) -> ProjectLifecycle:
    """Get a lifecycle service bound to the request session."""
    return ProjectLifecycle(session)


LifecycleDep = Annotated[ProjectLifecycle, Depends(get_lifecycle)]


def parse_uuid(value: str, label: str) -> UUID:
    """Parse a path id, answering 400 for malformed values."""
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {label} id",
        )

"""
Request Dependencies

The HTTP collaborators identify the caller with the ``X-User-Id`` header.
This is a stand-in for real authentication, which is out of scope here.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from huddle.models.user import User
from huddle.runtime import Hub


def get_hub(request: Request) -> Hub:
    """The process-scoped Hub created in the app lifespan."""
    return request.app.state.hub


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    hub: Hub = Depends(get_hub),
) -> User:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    user = await hub.store.get_user(x_user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user

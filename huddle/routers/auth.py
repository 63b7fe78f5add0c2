"""
Auth Router

Email/password registration and login. Passwords never leave the server;
responses carry the public user projection only.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from huddle.dependencies import get_hub
from huddle.exceptions import InvalidCredentialsError, InvalidInputError
from huddle.runtime import Hub


router = APIRouter()


class CredentialsRequest(BaseModel):
    """Validated by the service so bad input is a 400, not a 422."""

    email: str = ""
    password: str = ""


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: CredentialsRequest, hub: Hub = Depends(get_hub)):
    """Create an account and return the public user."""
    try:
        user = await hub.users.register(request.email, request.password)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return user.to_public().to_wire()


@router.post("/login")
async def login(request: CredentialsRequest, hub: Hub = Depends(get_hub)):
    try:
        user = await hub.users.login(request.email, request.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    return user.to_public().to_wire()

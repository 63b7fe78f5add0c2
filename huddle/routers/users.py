"""
Users Router

Profile editing (username and avatar) and chat attachment uploads.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from huddle.dependencies import get_current_user, get_hub
from huddle.exceptions import InvalidInputError
from huddle.models.user import User
from huddle.runtime import Hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/profile")
async def update_profile(
    username: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    hub: Hub = Depends(get_hub),
):
    """
    Update username and/or avatar.
    Max avatar size: 1MB. Format: JPEG, PNG, GIF.
    """
    try:
        avatar_url = None
        if avatar is not None and avatar.filename:
            content = await avatar.read()
            avatar_url = hub.users.save_avatar(
                current_user.id, avatar.filename, avatar.content_type, content
            )

        updated_user = await hub.users.update_profile(
            current_user.id, username=username, avatar_url=avatar_url
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return {
        "message": "Profile updated successfully",
        "user": updated_user.to_public().to_wire(),
    }


@router.post("/upload")
async def upload_chat_file(
    chat_file: Optional[UploadFile] = File(None, alias="chat-file"),
    current_user: User = Depends(get_current_user),
    hub: Hub = Depends(get_hub),
):
    """
    Store a chat attachment and return its URL for a follow-up send-message.
    Max size: 10MB. Format: JPEG, PNG, GIF, MP4, WebM, Ogg.
    """
    if chat_file is None or not chat_file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded.")

    content = await chat_file.read()
    try:
        file_url = hub.users.save_chat_file(chat_file.filename, chat_file.content_type, content)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(f"Chat file uploaded by {current_user.id}: {file_url}")
    return {"fileUrl": file_url}

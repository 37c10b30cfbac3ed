"""Profile picture routes: upload, fetch and delete the caller's picture."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.app.core.config import settings
from accounts.app.core.database import get_db
from accounts.app.core.errors import ForbiddenError
from accounts.app.models.user import User
from accounts.app.routes.deps import get_current_user, reject_query_params
from accounts.app.services.pictures import PictureService, picture_projection
from accounts.app.services.storage import ObjectStore, get_object_store

router = APIRouter(prefix="/users/self/pic", tags=["pictures"])

ALLOWED_METHODS = {"/users/self/pic": ("GET", "POST", "DELETE")}


class PictureResponse(BaseModel):
    file_name: str
    id: str
    url: str
    upload_date: str
    user_id: str


async def get_verified_user(user: User = Depends(get_current_user)) -> User:
    """Authenticated user who has completed email verification."""
    if settings.require_verified and not user.verified:
        raise ForbiddenError("Account not verified")
    return user


def get_picture_service(
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> PictureService:
    return PictureService(db, store)


@router.post("", response_model=PictureResponse, status_code=201)
async def upload_picture(
    request: Request,
    profilePic: Optional[UploadFile] = File(None),
    user: User = Depends(get_verified_user),
    service: PictureService = Depends(get_picture_service),
):
    """Upload the profile picture. Delete the existing one first to replace it."""
    reject_query_params(request)
    filename = profilePic.filename if profilePic else None
    content_type = profilePic.content_type if profilePic else None
    # One byte past the limit is enough to know it is oversized
    data = await profilePic.read(settings.max_picture_bytes + 1) if profilePic else b""
    picture = await service.upload(user, filename, content_type, data)
    return picture_projection(picture)


@router.get("", response_model=PictureResponse)
async def get_picture(
    user: User = Depends(get_verified_user),
    service: PictureService = Depends(get_picture_service),
):
    """Get the profile picture metadata."""
    picture = await service.read(user)
    return picture_projection(picture)


@router.delete("", status_code=204)
async def delete_picture(
    user: User = Depends(get_verified_user),
    service: PictureService = Depends(get_picture_service),
):
    """Delete the stored image and its metadata."""
    await service.delete(user)
    return Response(status_code=204)


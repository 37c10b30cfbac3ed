"""Profile picture lifecycle: upload, read, delete.

One picture per account. Deletion removes the stored object first and only
then the metadata row, so a row never points at a missing object.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.app.core.config import settings
from accounts.app.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from accounts.app.core.timezone import to_display
from accounts.app.models.profile_picture import ProfilePicture
from accounts.app.models.user import User
from accounts.app.services.storage import ObjectStore, StorageError, build_object_key

logger = logging.getLogger(__name__)


def picture_projection(picture: ProfilePicture) -> dict[str, Any]:
    return {
        "file_name": picture.file_name,
        "id": picture.id,
        "url": picture.url,
        "upload_date": to_display(picture.upload_date),
        "user_id": picture.user_id,
    }


class PictureService:
    """Profile picture operations for the authenticated account."""

    def __init__(self, db: AsyncSession, store: ObjectStore):
        self.db = db
        self.store = store

    async def get_for_user(self, user: User) -> Optional[ProfilePicture]:
        result = await self.db.execute(
            select(ProfilePicture).where(ProfilePicture.user_id == user.id)
        )
        return result.scalar_one_or_none()

    async def upload(
        self,
        user: User,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> ProfilePicture:
        """Store a new picture for user.

        Raises:
            ConflictError: A picture already exists.
            ValidationError: Missing file, disallowed type or oversized payload.
            InternalError: Storage or persistence failed.
        """
        if await self.get_for_user(user):
            raise ConflictError("Profile picture already exists")

        if not filename:
            raise ValidationError("No file uploaded", field="profilePic")
        if content_type not in settings.allowed_picture_types:
            raise ValidationError(f"Unsupported content type {content_type!r}", field="profilePic")
        if not data:
            raise ValidationError("Empty file", field="profilePic")
        if len(data) > settings.max_picture_bytes:
            raise ValidationError(f"File too large ({len(data)} bytes)", field="profilePic")

        key = build_object_key(user.id, filename)
        try:
            stored = await self.store.upload(key, data, content_type)
        except StorageError as exc:
            logger.error("Picture upload failed for %s: %s", user.id, exc)
            raise InternalError("Picture upload failed") from exc

        picture = ProfilePicture(
            user_id=user.id,
            file_name=filename,
            content_type=content_type,
            storage_key=stored.key,
            url=stored.url,
        )
        self.db.add(picture)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            await self._discard_object(stored.key)
            if isinstance(exc, IntegrityError):
                raise ConflictError("Profile picture already exists") from exc
            logger.error("Failed to save picture metadata for %s: %s", user.id, exc)
            raise InternalError("Failed to save picture metadata") from exc
        await self.db.refresh(picture)
        logger.info("Profile picture uploaded for %s: %s", user.id, stored.key)
        return picture

    async def _discard_object(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except StorageError:
            logger.warning("Orphaned object left in storage: %s", key, exc_info=True)

    async def read(self, user: User) -> ProfilePicture:
        picture = await self.get_for_user(user)
        if not picture:
            raise NotFoundError("Profile picture not found")
        return picture

    async def delete(self, user: User) -> None:
        """Delete the stored object, then its metadata row.

        Raises:
            NotFoundError: No picture (no storage call is made).
            InternalError: Storage delete failed; the row is kept.
        """
        picture = await self.get_for_user(user)
        if not picture:
            raise NotFoundError("Profile picture not found")

        try:
            await self.store.delete(picture.storage_key)
        except StorageError as exc:
            logger.error("Picture delete failed for %s: %s", user.id, exc)
            raise InternalError("Picture delete failed") from exc

        await self.db.delete(picture)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Object %s deleted but metadata row remains: %s", picture.storage_key, exc)
            raise InternalError("Failed to delete picture metadata") from exc
        logger.info("Profile picture deleted for %s", user.id)

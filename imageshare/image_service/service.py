from typing import List, Optional
import asyncio
import logging
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from imageshare.storage.dynamodb import DynamoDBService
from imageshare.storage.s3 import S3Service
from imageshare.image_service.keys import generate_key, is_valid_upload_key
from imageshare.image_service.models import (
    ImageRecord,
    Owner,
    PresignGrant,
    UploadedImage,
    is_valid_image_id,
)
from imageshare.settings import settings
from imageshare.exceptions import (
    ForbiddenException,
    ImageNotFoundException,
    InvalidImageIdException,
    InvalidInputException,
    PresignFailedException,
    StoreException,
    UnauthorizedException,
)

log = logging.getLogger(__name__)

def storage_path(key: str) -> str:
    """Object key in the bucket for an upload key."""
    return f"{settings.raw_prefix}/{key}"

def _require_user(user: Optional[Owner]) -> Owner:
    if user is None:
        raise UnauthorizedException()
    return user

def _require_image_id(image_id: str) -> str:
    if not is_valid_image_id(image_id):
        raise InvalidImageIdException(image_id)
    return image_id.lower()

def _load(db: DynamoDBService, image_id: str) -> Optional[ImageRecord]:
    try:
        item = db.get_metadata(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_metadata failed: {e}")
        raise StoreException(f"Failed to get image metadata: {e}")
    return ImageRecord.from_item(item) if item else None

# ------------------------------
# Presign / commit
# ------------------------------

async def presign_uploads(s3: S3Service, user: Optional[Owner], content_types: List[str]) -> List[PresignGrant]:
    """
        Generates a storage key and a presigned PUT URL for each content type.

        Grants are returned in request order. Either every grant is issued or
        the call fails as a whole.
    """
    _require_user(user)
    if not content_types:
        raise InvalidInputException("contentTypes must be a non-empty list.")

    # an unsupported type aborts the batch before any URL is signed
    keys = [generate_key(content_type) for content_type in content_types]

    try:
        urls = await asyncio.gather(*(
            run_in_threadpool(s3.generate_presigned_upload_url, storage_path(key), content_type)
            for key, content_type in zip(keys, content_types)
        ))
    except (BotoCoreError, ClientError) as e:
        log.error(f"Presigning {len(keys)} uploads failed: {e}")
        raise PresignFailedException(f"Failed to generate upload URLs: {e}")

    log.info("Issued %d upload grants for user %s", len(keys), user.id)
    return [PresignGrant(key=key, upload_url=url) for key, url in zip(keys, urls)]

def create_image(db: DynamoDBService, user: Optional[Owner], public: bool, key: str, original_filename: str) -> ImageRecord:
    """Persists one image record. The object at `key` is assumed to be uploaded already."""
    owner = _require_user(user)
    image = ImageRecord(
        owner=Owner(id=owner.id, name=owner.name, username=owner.username),
        public=public,
        key=key,
        original_filename=original_filename,
    )
    try:
        db.put_metadata(image.to_item())
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_metadata failed: {e}")
        raise StoreException(f"Failed to save image metadata: {e}")
    log.info("Saved image metadata %s", image.image_id)
    return image

async def commit_uploads(
    db: DynamoDBService,
    user: Optional[Owner],
    images: List[UploadedImage],
    public: bool,
) -> List[ImageRecord]:
    """
        Creates one record per uploaded image, all with the same owner and visibility.

        Records already created are kept if a sibling fails.
    """
    _require_user(user)
    for image in images:
        if not is_valid_upload_key(image.image_key):
            raise InvalidInputException(f"Invalid image key '{image.image_key}'.")

    return list(await asyncio.gather(*(
        run_in_threadpool(create_image, db, user, public, image.image_key, image.original_filename)
        for image in images
    )))

# ------------------------------
# Read
# ------------------------------

def get_visible_image(db: DynamoDBService, image_id: str, user: Optional[Owner]) -> ImageRecord:
    """Gets one image; private images are only returned to their owner."""
    image_id = _require_image_id(image_id)
    image = _load(db, image_id)
    if image is None:
        raise ImageNotFoundException(image_id)
    if not image.is_visible_to(user):
        raise ForbiddenException()
    return image

# ------------------------------
# Delete
# ------------------------------

def remove_image(db: DynamoDBService, image_id: str, user: Optional[Owner]) -> Optional[ImageRecord]:
    """
        Deletes the caller's image metadata.

        Returns the deleted record, or None if it was already gone. Deleting
        somebody else's image raises ForbiddenException.
    """
    owner = _require_user(user)
    image_id = _require_image_id(image_id)
    try:
        item = db.delete_owned_metadata(image_id, owner.id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_metadata failed: {e}")
        raise StoreException(f"Failed to delete image metadata: {e}")

    if item is not None:
        log.info("Deleted image %s", image_id)
        return ImageRecord.from_item(item)

    # the conditional delete did nothing: either gone or not ours
    if _load(db, image_id) is not None:
        raise ForbiddenException("You can only delete your own images.")
    log.info("Image %s was already deleted", image_id)
    return None

def release_storage_object(s3: S3Service, key: str) -> None:
    """Best-effort removal of an uploaded object. Metadata is authoritative, so failures are only logged."""
    try:
        s3.delete(storage_path(key))
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 delete of {key} failed, object left orphaned: {e}", exc_info=e)

# ------------------------------
# Likes
# ------------------------------

def _after_failed_update(db: DynamoDBService, image_id: str, user: Owner) -> ImageRecord:
    image = _load(db, image_id)
    if image is None:
        raise ImageNotFoundException(image_id)
    if not image.is_visible_to(user):
        raise ForbiddenException()
    return image

def like_image(db: DynamoDBService, image_id: str, user: Optional[Owner]) -> ImageRecord:
    """Adds the caller to the image's likes. Liking twice is the same as liking once."""
    liker = _require_user(user)
    image_id = _require_image_id(image_id)
    try:
        item = db.add_like(image_id, liker.id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB add_like failed: {e}")
        raise StoreException(f"Failed to like image: {e}")
    if item is None:
        return _after_failed_update(db, image_id, liker)
    return ImageRecord.from_item(item)

def unlike_image(db: DynamoDBService, image_id: str, user: Optional[Owner]) -> ImageRecord:
    """Removes the caller from the image's likes; a no-op if they never liked it."""
    liker = _require_user(user)
    image_id = _require_image_id(image_id)
    try:
        item = db.remove_like(image_id, liker.id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB remove_like failed: {e}")
        raise StoreException(f"Failed to unlike image: {e}")
    if item is None:
        return _after_failed_update(db, image_id, liker)
    return ImageRecord.from_item(item)

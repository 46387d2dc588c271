from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import List, Optional
import logging

from imageshare.storage.dynamodb import DynamoDBService
from imageshare.storage.s3 import S3Service
from imageshare.dependencies.dependencies import (
    get_current_user,
    get_dynamodb_service,
    get_s3_service,
    require_current_user,
)
from imageshare.image_service import service
from imageshare.image_service.pagination import fetch_feed
from imageshare.image_service.models import (
    CommitRequest,
    ImageRecord,
    MessageResponse,
    Owner,
    PresignGrant,
    PresignRequest,
)

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["images"]
)

@router.post("/presigned", response_model=List[PresignGrant])
async def presign_uploads(
    payload: PresignRequest,
    user: Owner = Depends(require_current_user),
    s3: S3Service = Depends(get_s3_service)
):
    """
    Issues one storage key and presigned upload URL per declared content type.

    The client PUTs the file bytes straight to the URL, then commits the keys
    with POST /images.
    """
    return await service.presign_uploads(s3, user, payload.content_types)

@router.post("", response_model=List[ImageRecord])
async def commit_uploads(
    payload: CommitRequest,
    user: Owner = Depends(require_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Records already uploaded images; visibility applies to the whole batch."""
    return await service.commit_uploads(db, user, payload.images, payload.public)

@router.get("", response_model=List[ImageRecord])
def list_images(
    lastid: Optional[str] = Query(None, description="image_id of the last image of the previous page"),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Lists public images, newest first."""
    return fetch_feed(db, last_id=lastid)

@router.get("/{image_id}", response_model=ImageRecord)
def get_image(
    image_id: str,
    user: Optional[Owner] = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Gets one image. Private images are only visible to their owner."""
    return service.get_visible_image(db, image_id, user)

@router.delete("/{image_id}", response_model=MessageResponse)
def delete_image(
    image_id: str,
    background_tasks: BackgroundTasks,
    user: Owner = Depends(require_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Deletes one of the caller's images and, after responding, its stored object."""
    image = service.remove_image(db, image_id, user)
    if image is None:
        return MessageResponse(message="The image was already deleted.")
    background_tasks.add_task(service.release_storage_object, s3, image.key)
    return MessageResponse(message="The image was deleted.")

@router.patch("/{image_id}/like", response_model=ImageRecord)
def like_image(
    image_id: str,
    user: Owner = Depends(require_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    return service.like_image(db, image_id, user)

@router.patch("/{image_id}/unlike", response_model=ImageRecord)
def unlike_image(
    image_id: str,
    user: Owner = Depends(require_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    return service.unlike_image(db, image_id, user)

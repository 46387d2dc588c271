from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from imageshare.storage.dynamodb import DynamoDBService
from imageshare.dependencies.dependencies import get_dynamodb_service, require_current_user
from imageshare.image_service.pagination import fetch_user_images
from imageshare.image_service.models import ImageRecord, Owner

router = APIRouter(
    prefix="/users",
    tags=["users"]
)

@router.get("/me/images", response_model=List[ImageRecord])
def list_my_images(
    lastid: Optional[str] = Query(None),
    user: Owner = Depends(require_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Lists the caller's own images, public and private, newest first."""
    return fetch_user_images(db, user, last_id=lastid)

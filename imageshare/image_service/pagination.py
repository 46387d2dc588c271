"""
    Cursor pagination over image records.

    Pages are ordered by image_id descending. The cursor is the image_id of the
    last record of the previous page, so records inserted after a page was read
    only ever show up at the head of the feed and never shift later pages.
"""
from typing import List, Optional
import logging
from botocore.exceptions import BotoCoreError, ClientError

from imageshare.storage.dynamodb import DynamoDBService, VISIBILITY_INDEX, USER_INDEX
from imageshare.constants import PUBLIC
from imageshare.image_service.models import ImageRecord, Owner, is_valid_image_id
from imageshare.exceptions import InvalidImageIdException, StoreException
from imageshare.settings import settings

log = logging.getLogger(__name__)

def _page(
    db: DynamoDBService,
    index_name: str,
    partition_key: str,
    partition_value: str,
    last_id: Optional[str],
    limit: Optional[int],
) -> List[ImageRecord]:
    # an empty cursor means the first page
    if last_id and not is_valid_image_id(last_id):
        raise InvalidImageIdException(last_id)
    before = last_id.lower() if last_id else None
    try:
        items = db.query_index(
            index_name,
            partition_key,
            partition_value,
            before=before,
            limit=limit or settings.feed_page_size,
        )
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB query on {index_name} failed: {e}")
        raise StoreException(f"Failed to fetch images: {e}")
    return [ImageRecord.from_item(item) for item in items]

def fetch_feed(db: DynamoDBService, last_id: Optional[str] = None, limit: Optional[int] = None) -> List[ImageRecord]:
    """Fetches one page of public images, newest first, strictly older than `last_id`."""
    return _page(db, VISIBILITY_INDEX, "visibility", PUBLIC, last_id, limit)

def fetch_user_images(
    db: DynamoDBService,
    user: Owner,
    last_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[ImageRecord]:
    """Fetches one page of the user's own images, public and private."""
    return _page(db, USER_INDEX, "user_id", user.id, last_id, limit)

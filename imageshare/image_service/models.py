from typing import Any, Dict, List, Optional, Set
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_serializer
import os
import re
import threading
import time

from imageshare.constants import MAX_UPLOAD_BATCH, PUBLIC, PRIVATE

# -------------------------
# Image ids
# -------------------------
# 4-byte timestamp | 5 random bytes per process | 3-byte counter, as 24 hex chars.
# Fixed width lowercase hex sorts the same as creation order; uppercase input is
# accepted and lowered before it reaches the store.
IMAGE_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_PROCESS_UNIQUE = os.urandom(5).hex()
_MAX_COUNTER = 0xFFFFFF
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = 0

def new_image_id() -> str:
    """Generates a new image ID, greater than every ID previously generated by this process."""
    global _last_timestamp, _counter
    with _id_lock:
        timestamp = int(time.time())
        if timestamp > _last_timestamp:
            _last_timestamp, _counter = timestamp, 0
        elif _counter < _MAX_COUNTER:
            _counter += 1
        else:
            # counter exhausted within one second: borrow the next second
            _last_timestamp, _counter = _last_timestamp + 1, 0
        return f"{_last_timestamp:08x}{_PROCESS_UNIQUE}{_counter:06x}"

def is_valid_image_id(image_id: Optional[str]) -> bool:
    return bool(image_id) and IMAGE_ID_PATTERN.match(image_id) is not None

# -------------------------
# Records
# -------------------------
class Owner(BaseModel):
    """Snapshot of the uploading user, frozen at commit time."""
    id: str
    name: str = ""
    username: str = ""

class ImageRecord(BaseModel):
    image_id: str = Field(default_factory=new_image_id)
    owner: Owner
    public: bool
    key: str
    original_filename: str
    liked_by: Set[str] = Field(default_factory=set)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("liked_by")
    def _serialize_liked_by(self, liked_by: Set[str]) -> List[str]:
        return sorted(liked_by)

    def is_owned_by(self, user: Optional[Owner]) -> bool:
        return user is not None and user.id == self.owner.id

    def is_visible_to(self, user: Optional[Owner]) -> bool:
        """Public images are visible to everyone, private ones only to their owner."""
        return self.public or self.is_owned_by(user)

    def to_item(self) -> Dict[str, Any]:
        item = {
            "image_id": self.image_id,
            "user_id": self.owner.id,
            "owner": self.owner.model_dump(),
            "visibility": PUBLIC if self.public else PRIVATE,
            "key": self.key,
            "original_filename": self.original_filename,
            # Dynamo needs created_at as ISO string
            "created_at": self.created_at.isoformat(),
        }
        # DynamoDB rejects empty sets; an absent attribute is the empty set
        if self.liked_by:
            item["liked_by"] = set(self.liked_by)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "ImageRecord":
        return cls(
            image_id=item["image_id"],
            owner=Owner(**item["owner"]),
            public=item["visibility"] == PUBLIC,
            key=item["key"],
            original_filename=item.get("original_filename", ""),
            liked_by=set(item.get("liked_by") or ()),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

# -------------------------
# Requests / responses
# -------------------------
class PresignRequest(BaseModel):
    content_types: List[str] = Field(..., alias="contentTypes", min_length=1, max_length=MAX_UPLOAD_BATCH)

    model_config = ConfigDict(populate_by_name=True)

class PresignGrant(BaseModel):
    key: str
    upload_url: str = Field(..., alias="uploadUrl")

    model_config = ConfigDict(populate_by_name=True)

class UploadedImage(BaseModel):
    image_key: str = Field(..., alias="imageKey", min_length=1)
    original_filename: str = Field(..., alias="originalname")

    model_config = ConfigDict(populate_by_name=True)

class CommitRequest(BaseModel):
    images: List[UploadedImage] = Field(..., min_length=1, max_length=MAX_UPLOAD_BATCH)
    public: bool

class MessageResponse(BaseModel):
    message: str

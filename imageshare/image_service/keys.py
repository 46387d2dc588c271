"""Storage keys for uploads, derived from the declared content type only."""
import re
import uuid

from imageshare.exceptions import InvalidContentTypeException

# Allowed content types and the extension their objects are stored under
IMAGE_EXTENSIONS = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
    "image/avif": "avif",
}

UPLOAD_KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.(%s)$"
    % "|".join(sorted(set(IMAGE_EXTENSIONS.values())))
)

def extension_for(content_type: str) -> str:
    # parameters such as "; charset=..." don't change the extension
    mime = content_type.split(";", 1)[0].strip().lower()
    try:
        return IMAGE_EXTENSIONS[mime]
    except KeyError:
        raise InvalidContentTypeException(content_type) from None

def generate_key(content_type: str) -> str:
    """Generates a new unique storage key such as ``<uuid4>.png``."""
    return f"{uuid.uuid4()}.{extension_for(content_type)}"

def is_valid_upload_key(key: str) -> bool:
    return UPLOAD_KEY_PATTERN.match(key) is not None

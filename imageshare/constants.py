# Stored value of the `visibility` attribute, the partition key of the public feed index
PUBLIC = "public"
PRIVATE = "private"

# Most files one presign or commit request may carry
MAX_UPLOAD_BATCH = 5

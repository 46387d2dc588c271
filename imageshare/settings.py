from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    aws_region: str = "us-east-1"
    s3_bucket: str = "image-share-bucket"
    dynamodb_table: str = "Images"
    aws_endpoint_url: Optional[str] = None
    # Public hostname substituted into presigned URLs (e.g. localstack behind docker)
    external_endpoint: Optional[str] = None

    aws_access_key_id: str = "test"
    aws_secret_access_key: str = "test"

    # Objects uploaded through presigned URLs land under this prefix
    raw_prefix: str = "raw"
    presign_expire_seconds: int = 300
    feed_page_size: int = 12

    app_title: str = "Image Sharing Service"
    root_path: str = "/api/v1"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

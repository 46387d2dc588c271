from typing import Optional
from fastapi import Depends, Header, Request
from imageshare.storage.dynamodb import DynamoDBService
from imageshare.storage.s3 import S3Service
from imageshare.image_service.models import Owner
from imageshare.exceptions import UnauthorizedException

def get_s3_service(request: Request) -> S3Service:
    """Dependency provider for S3Service"""
    return request.app.state.s3

def get_dynamodb_service(request: Request) -> DynamoDBService:
    """Dependency provider for DynamoDBService"""
    return request.app.state.db

def get_current_user(
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    name: Optional[str] = Header(None, alias="X-User-Name"),
    username: Optional[str] = Header(None, alias="X-User-Username"),
) -> Optional[Owner]:
    """
        Caller identity as forwarded by the authenticating gateway.
        Anonymous callers (no X-User-Id) get None.
    """
    if not user_id:
        return None
    return Owner(id=user_id, name=name or "", username=username or "")

def require_current_user(user: Optional[Owner] = Depends(get_current_user)) -> Owner:
    """Dependency provider for endpoints that need an authenticated caller"""
    if user is None:
        raise UnauthorizedException()
    return user

"""
    Centralized exception handling for the FastAPI application.

    Every failure leaves the service as a 400 with a ``{"message": ...}`` body;
    clients show the message and do not branch on the error kind.
"""
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, detail: str, status_code: int = 400):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class UnauthorizedException(APIException):
    """Exception for requests without a caller identity."""
    def __init__(self, detail: str = "Authentication required."):
        super().__init__(detail)

class InvalidInputException(APIException):
    """Exception for malformed request bodies or parameters."""
    def __init__(self, detail: str):
        super().__init__(detail)

class InvalidImageIdException(InvalidInputException):
    """Exception for identifiers that are not well-formed image ids."""
    def __init__(self, image_id: str):
        super().__init__(f"Invalid image id '{image_id}'.")

class InvalidContentTypeException(InvalidInputException):
    """Exception for content types that cannot be mapped to a file extension."""
    def __init__(self, content_type: str):
        super().__init__(f"Unsupported content type: {content_type}")

class ImageNotFoundException(APIException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(f"Image with ID '{image_id}' not found.")

class ForbiddenException(APIException):
    """Exception for callers that may not access an image."""
    def __init__(self, detail: str = "You do not have permission to access this image."):
        super().__init__(detail)

class PresignFailedException(APIException):
    """Exception for presigned upload URL failures."""
    def __init__(self, detail: str):
        super().__init__(detail)

class StoreException(APIException):
    """Exception for DynamoDB failures."""
    def __init__(self, detail: str):
        super().__init__(detail)

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    log.error(f"API Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=400,
        content={"message": str(exc.detail)},
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles request validation errors as invalid input."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid input: {location}: {first.get('msg')}" if location else f"Invalid input: {first.get('msg')}"
    else:
        message = "Invalid input."
    log.warning(f"Validation Exception: {message}")
    return JSONResponse(
        status_code=400,
        content={"message": message},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=400,
        content={"message": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

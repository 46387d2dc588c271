from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from imageshare.storage.dynamodb import DynamoDBService
from imageshare.storage.s3 import S3Service
from imageshare.settings import settings
from imageshare.routers.images import router as image_router
from imageshare.routers.users import router as user_router
from imageshare.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level.upper())
log = logging.getLogger("image-share")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Initializes and closes resources (S3, DynamoDB) for the application.
    """
    # Initialize resources
    app.state.s3 = S3Service()
    app.state.db = DynamoDBService()
    yield
    # Cleanup resources
    app.state.s3.close()
    app.state.db.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Image Sharing Service",
    root_path=settings.root_path
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(image_router)
app.include_router(user_router)

# Check Health
@app.get("/")
def read_root():
    """
        Default end point
    """
    return "Image Sharing Service is running."

if __name__ == "__main__":
    uvicorn.run("imageshare.main:app", host="0.0.0.0", port=8000, reload=True)

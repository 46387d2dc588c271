import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing app modules
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "image-share-bucket"
os.environ["DYNAMODB_TABLE"] = "Images"
os.environ["ROOT_PATH"] = ""
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)

from imageshare.main import app
from imageshare.dependencies.dependencies import get_dynamodb_service, get_s3_service
from imageshare.storage.s3 import S3Service
from imageshare.storage.dynamodb import DynamoDBService
from imageshare.image_service.models import Owner


@pytest.fixture(scope="function")
def aws():
    """S3 and DynamoDB services backed by moto; they create their own bucket and table."""
    with mock_aws():
        yield S3Service(), DynamoDBService()


@pytest.fixture(scope="function")
def s3_service(aws):
    return aws[0]


@pytest.fixture(scope="function")
def db_service(aws):
    return aws[1]


@pytest.fixture(scope="function")
def test_client(aws):
    # Route handlers use the fixture services so tests can inspect them directly
    s3_service, db_service = aws
    app.dependency_overrides[get_s3_service] = lambda: s3_service
    app.dependency_overrides[get_dynamodb_service] = lambda: db_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return Owner(id="user-alice", name="Alice", username="alice")


@pytest.fixture
def bob():
    return Owner(id="user-bob", name="Bob", username="bob")


@pytest.fixture
def auth_headers():
    """Builds the identity headers the gateway forwards for a user."""
    def build(user: Owner) -> dict:
        return {"X-User-Id": user.id, "X-User-Name": user.name, "X-User-Username": user.username}
    return build

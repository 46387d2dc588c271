import boto3
from typing import Optional, Dict, Any, List
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from imageshare.settings import settings
from imageshare.constants import PUBLIC
import logging

log = logging.getLogger(__name__)

VISIBILITY_INDEX = "VisibilityIndex"
USER_INDEX = "UserIndex"

def _condition_failed(error: ClientError) -> bool:
    return error.response["Error"]["Code"] == "ConditionalCheckFailedException"

def _visible_to(user_id: str):
    return Attr("visibility").eq(PUBLIC) | Attr("user_id").eq(user_id)

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        log.info("Initialized DynamoDB resource")

        # Ensure table exists at initialization
        self.ensure_table()

    @property
    def table(self):
        return self.resource.Table(settings.dynamodb_table)

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            table = self.resource.Table(settings.dynamodb_table)
            table.load()
        except ClientError:
            # image_id doubles as the range key of both indexes so that pages
            # come back newest first
            table = self.resource.create_table(
                TableName=settings.dynamodb_table,
                KeySchema=[{"AttributeName": "image_id", "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": "image_id", "AttributeType": "S"},
                    {"AttributeName": "user_id", "AttributeType": "S"},
                    {"AttributeName": "visibility", "AttributeType": "S"},
                ],
                GlobalSecondaryIndexes=[
                    {
                        "IndexName": USER_INDEX,
                        "KeySchema": [
                            {"AttributeName": "user_id", "KeyType": "HASH"},
                            {"AttributeName": "image_id", "KeyType": "RANGE"},
                        ],
                        "Projection": {"ProjectionType": "ALL"},
                        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
                    },
                    {
                        "IndexName": VISIBILITY_INDEX,
                        "KeySchema": [
                            {"AttributeName": "visibility", "KeyType": "HASH"},
                            {"AttributeName": "image_id", "KeyType": "RANGE"},
                        ],
                        "Projection": {"ProjectionType": "ALL"},
                        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
                    },
                ],
                ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            )
            table.wait_until_exists()
            log.info("Created table %s", settings.dynamodb_table)

    def put_metadata(self, item: Dict[str, Any]):
        self.table.put_item(
            Item=item,
            ConditionExpression=Attr("image_id").not_exists(),
        )
        log.debug("Inserted metadata %s", item.get("image_id"))

    def get_metadata(self, image_id: str) -> Optional[Dict[str, Any]]:
        resp = self.table.get_item(Key={"image_id": image_id}, ConsistentRead=True)
        return resp.get("Item")

    def query_index(
        self,
        index_name: str,
        partition_key: str,
        partition_value: str,
        before: Optional[str] = None,
        limit: int = 12,
    ) -> List[Dict[str, Any]]:
        """Returns up to `limit` items of one index partition, highest image_id first."""
        condition = Key(partition_key).eq(partition_value)
        if before:
            condition = condition & Key("image_id").lt(before)
        resp = self.table.query(
            IndexName=index_name,
            KeyConditionExpression=condition,
            ScanIndexForward=False,
            Limit=limit,
        )
        return resp.get("Items", [])

    def delete_owned_metadata(self, image_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
            Deletes the item only if `user_id` owns it.
            Returns the deleted item, or None when the item is missing or owned by someone else.
        """
        try:
            resp = self.table.delete_item(
                Key={"image_id": image_id},
                ConditionExpression=Attr("user_id").eq(user_id),
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        log.debug("Deleted metadata %s", image_id)
        return resp.get("Attributes")

    def add_like(self, image_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Adds `user_id` to the liked_by set. None when the image is missing or not visible to the user."""
        try:
            resp = self.table.update_item(
                Key={"image_id": image_id},
                UpdateExpression="ADD liked_by :uid",
                ConditionExpression=Attr("image_id").exists() & _visible_to(user_id),
                ExpressionAttributeValues={":uid": {user_id}},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        return resp.get("Attributes")

    def remove_like(self, image_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Removes `user_id` from the liked_by set. None when there was nothing to remove."""
        try:
            resp = self.table.update_item(
                Key={"image_id": image_id},
                UpdateExpression="DELETE liked_by :uid",
                ConditionExpression=(
                    Attr("image_id").exists()
                    & Attr("liked_by").contains(user_id)
                    & _visible_to(user_id)
                ),
                ExpressionAttributeValues={":uid": {user_id}},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        return resp.get("Attributes")

    def close(self):
        self.resource.meta.client.close()
        log.info("Closed DynamoDB resource")

import time
import logging
import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from djrequests.config import get_settings

logger = logging.getLogger(__name__)

# Secondary indexes, each keyed by <name>_PK / <name>_SK string attributes
GSI_NAMES = ["GSI_EventRequests", "GSI_EventsByDj"]


def get_db_connection():
    settings = get_settings()
    try:
        dynamodb = boto3.resource(
            "dynamodb",
            endpoint_url=settings.dynamodb_endpoint_url,
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
        return dynamodb
    except NoCredentialsError:
        logger.error("AWS credentials not available")
        return None


def create_table_if_not_exists(table_name=None, dynamodb=None):
    """Create the single DynamoDB table with its GSIs if it doesn't exist"""
    table_name = table_name or get_settings().table_name
    dynamodb = dynamodb or get_db_connection()

    try:
        table = dynamodb.Table(table_name)
        table.table_status
        logger.info("Table %s already exists", table_name)
        return table
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    attribute_definitions = [
        {"AttributeName": "PK", "AttributeType": "S"},
        {"AttributeName": "SK", "AttributeType": "S"},
    ]
    global_secondary_indexes = []
    for index_name in GSI_NAMES:
        attribute_definitions.append(
            {"AttributeName": f"{index_name}_PK", "AttributeType": "S"}
        )
        attribute_definitions.append(
            {"AttributeName": f"{index_name}_SK", "AttributeType": "S"}
        )
        global_secondary_indexes.append(
            {
                "IndexName": index_name,
                "KeySchema": [
                    {"AttributeName": f"{index_name}_PK", "KeyType": "HASH"},
                    {"AttributeName": f"{index_name}_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        )

    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=attribute_definitions,
        BillingMode="PAY_PER_REQUEST",
        GlobalSecondaryIndexes=global_secondary_indexes,
    )

    logger.info("Creating table %s...", table_name)
    table.wait_until_exists()

    logger.info("Waiting for GSIs to be active...")
    while True:
        table.reload()
        gsi_statuses = [
            gsi.get("IndexStatus", "ACTIVE")
            for gsi in table.global_secondary_indexes or []
        ]
        if all(status == "ACTIVE" for status in gsi_statuses):
            break
        time.sleep(1)

    logger.info("Table %s created successfully", table_name)
    return table


def delete_table(table_name=None, dynamodb=None):
    """Delete the DynamoDB table"""
    table_name = table_name or get_settings().table_name
    dynamodb = dynamodb or get_db_connection()

    try:
        table = dynamodb.Table(table_name)
        table.delete()
        table.wait_until_not_exists()
        logger.info("Table %s deleted successfully", table_name)
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise
        logger.info("Table %s does not exist", table_name)

"""
S3 Data Access Object for uploaded broker statements.
"""
import logging
import os
import boto3
from typing import Optional, Tuple
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


def get_s3_client():
    return boto3.client('s3', region_name=os.environ.get('AWS_REGION', 'eu-west-2'))


# Get bucket name from environment
FILE_STORAGE_BUCKET = os.environ.get('FILE_STORAGE_BUCKET', 'tradejournal-dev-statements')


def split_s3_location(location: str, bucket: Optional[str] = None) -> Tuple[str, str]:
    """
    Split an s3://bucket/key URI, or a bare key, into (bucket, key).

    Bare keys use the given bucket, defaulting to FILE_STORAGE_BUCKET.
    """
    if location.startswith('s3://'):
        bucket_name, _, key = location[len('s3://'):].partition('/')
        if not bucket_name or not key:
            raise ValueError(f"Invalid S3 location: {location}")
        return bucket_name, key
    return bucket or FILE_STORAGE_BUCKET, location.lstrip('/')


def statement_key_belongs_to(key: str, user_id: str) -> bool:
    """Uploaded statements live under '{user_id}/...'."""
    return key.startswith(f"{user_id}/")


def get_object_content(key: str, bucket: Optional[str] = None) -> Optional[bytes]:
    """
    Get the content of an S3 object.

    Args:
        key: The S3 key of the object
        bucket: Optional bucket name (defaults to FILE_STORAGE_BUCKET)

    Returns:
        The object content as bytes if successful, None otherwise
    """
    try:
        bucket = bucket or FILE_STORAGE_BUCKET
        response = get_s3_client().get_object(Bucket=bucket, Key=key)
        return response['Body'].read()
    except ClientError as e:
        logger.error(f"Error reading object content from S3 ({bucket}/{key}): {str(e)}")
        return None

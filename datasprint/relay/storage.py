"""
Object storage used behind the upload relay.

Files are written to an S3 bucket with the relay's own service credentials;
clients never see those credentials, only the returned key and URL.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import boto3
import shortuuid
from botocore.exceptions import ClientError

from ..config import CredentialBundle
from ..exceptions import ConfigurationError

logger = logging.getLogger("datasprint.relay.storage")


@dataclass
class StoredObject:
    file_id: str
    file_url: str


def build_session(credentials: CredentialBundle) -> boto3.session.Session:
    """
    Build the boto3 session the relay uploads with.

    Static keys from the bundle are used when present, otherwise the default
    provider chain. When a role ARN is configured, the session is exchanged
    for temporary credentials through STS AssumeRole.

    Raises:
        ConfigurationError: If AssumeRole fails
    """
    credentials.validate()
    base_session = boto3.session.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=credentials.region,
    )
    if not credentials.role_arn:
        return base_session

    try:
        response = base_session.client("sts").assume_role(
            RoleArn=credentials.role_arn,
            RoleSessionName=f"datasprint-relay-{int(time.time())}",
            DurationSeconds=3600,
        )
    except ClientError as err:
        raise ConfigurationError(f"Failed to assume role {credentials.role_arn}: {err}")

    assumed = response["Credentials"]
    return boto3.session.Session(
        aws_access_key_id=assumed["AccessKeyId"],
        aws_secret_access_key=assumed["SecretAccessKey"],
        aws_session_token=assumed["SessionToken"],
        region_name=credentials.region,
    )


def ensure_bucket(s3_client, bucket_name, region):
    """
    Ensure an S3 bucket exists, creating it if necessary.

    Returns:
        True if bucket was created, False if it already existed
    """
    try:
        s3_client.head_bucket(Bucket=bucket_name)
        return False
    except ClientError as e:
        if e.response["Error"]["Code"] not in ("404", "NoSuchBucket"):
            raise
    if not region or region == "us-east-1":
        s3_client.create_bucket(ACL="private", Bucket=bucket_name)
    else:
        s3_client.create_bucket(
            ACL="private",
            Bucket=bucket_name,
            CreateBucketConfiguration={"LocationConstraint": region},
        )
    logger.info(f"Created upload bucket {bucket_name} in {region or 'us-east-1'}")
    return True


class ObjectStorage:
    """Writes relayed files to one bucket under a folder prefix."""

    def __init__(self, bucket: str, session: Optional[boto3.session.Session] = None,
                 client=None, region: Optional[str] = None):
        self.bucket = bucket
        self.region = region or (session.region_name if session else None)
        self.client = client or (session or boto3.session.Session()).client("s3", region_name=self.region)

    def object_url(self, key: str) -> str:
        if self.region and self.region != "us-east-1":
            host = f"{self.bucket}.s3.{self.region}.amazonaws.com"
        else:
            host = f"{self.bucket}.s3.amazonaws.com"
        return f"https://{host}/{quote(key)}"

    def put(self, path: str, filename: str, content_type: Optional[str] = None,
            folder: str = "") -> StoredObject:
        """
        Upload a local file under a key unique to this call.

        Two uploads of the same filename never overwrite each other.

        Raises:
            botocore.exceptions.ClientError / BotoCoreError on provider failure
        """
        safe_name = os.path.basename(filename) or "upload"
        key = "/".join(p for p in (folder.strip("/"), f"{shortuuid.uuid()}-{safe_name}") if p)
        extra_args = {"Metadata": {"original-filename": quote(safe_name)}}
        if content_type:
            extra_args["ContentType"] = content_type
        self.client.upload_file(path, self.bucket, key, ExtraArgs=extra_args)
        logger.info(f"Stored {safe_name} as s3://{self.bucket}/{key}")
        return StoredObject(file_id=key, file_url=self.object_url(key))

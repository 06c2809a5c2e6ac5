"""
S3 storage backend implementation.

Stores files in an AWS S3 (or S3-compatible) bucket:
- s3://{bucket}/{prefix}/{key}

Visibility is carried by object ACLs: public files are written with the
'public-read' canned ACL, protected files with 'private'. Protected files
are served through short-lived presigned URLs.
"""

import logging
import mimetypes
from typing import Any, BinaryIO, Iterator, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError

from assetstore.exceptions import MisconfigurationError
from assetstore.storage.adapter import (
    NotFoundError,
    ObjectInfo,
    ObjectMetadata,
    StorageAdapter,
    StorageError,
    Visibility,
)

logger = logging.getLogger(__name__)

ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

_CANNED_ACL = {
    Visibility.PUBLIC: "public-read",
    Visibility.PROTECTED: "private",
}


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in NOT_FOUND_CODES


class S3Storage(StorageAdapter):
    """
    S3-based storage implementation.

    There is no server-side existence guard on PUT, so a write always
    replaces whatever is stored under the key.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        access_key_id: str = "",
        secret_access_key: str = "",
        presign_expiry: int = 900,
        client: Any = None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix applied to every stored key
            region: AWS region
            endpoint_url: Custom endpoint for S3-compatible stores
            access_key_id: AWS access key ID (falls back to the boto3 chain)
            secret_access_key: AWS secret access key
            presign_expiry: Lifetime of protected URLs in seconds
            client: Preconfigured boto3 S3 client

        Raises:
            MisconfigurationError: If no bucket is configured
        """
        if not bucket:
            raise MisconfigurationError(
                "No S3 bucket configured. Set ASSETSTORE_S3_BUCKET in the environment."
            )

        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.region = region
        self.presign_expiry = presign_expiry

        if client is None:
            credentials = {}
            if access_key_id and secret_access_key:
                credentials = {
                    "aws_access_key_id": access_key_id,
                    "aws_secret_access_key": secret_access_key,
                }
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                **credentials,
            )
        self.s3_client = client

    def _k(self, key: str) -> str:
        key = key.lstrip("/")
        return f"{self.prefix}/{key}" if self.prefix else key

    def _unprefix(self, s3_key: str) -> str:
        if self.prefix and s3_key.startswith(self.prefix + "/"):
            return s3_key[len(self.prefix) + 1:]
        return s3_key

    def _head(self, key: str) -> dict:
        try:
            return self.s3_client.head_object(Bucket=self.bucket, Key=self._k(key))
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(key) from e
            raise StorageError(f"Failed to inspect {key}: {e}") from e

    def _extra_args(self, key: str, visibility: Visibility) -> dict:
        extra = {"ACL": _CANNED_ACL[visibility]}
        mime_type, _ = mimetypes.guess_type(key)
        if mime_type:
            extra["ContentType"] = mime_type
        return extra

    def exists(self, key: str) -> bool:
        try:
            self._head(key)
            return True
        except NotFoundError:
            return False

    def read_stream(self, key: str) -> BinaryIO:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=self._k(key))
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(key) from e
            raise StorageError(f"Failed to retrieve {key}: {e}") from e
        return response["Body"]

    def read(self, key: str) -> bytes:
        body = self.read_stream(key)
        try:
            return body.read()
        finally:
            body.close()

    def write_stream(self, key: str, stream: BinaryIO, visibility: Visibility) -> bool:
        try:
            self.s3_client.upload_fileobj(
                stream,
                self.bucket,
                self._k(key),
                ExtraArgs=self._extra_args(key, visibility),
            )
        except ClientError as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.debug(f"Uploaded {key} to s3://{self.bucket} as {visibility.value}")
        return True

    def write(self, key: str, data: bytes, visibility: Visibility) -> bool:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=self._k(key),
                Body=data,
                **self._extra_args(key, visibility),
            )
        except ClientError as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.debug(f"Uploaded {key} to s3://{self.bucket} as {visibility.value}")
        return True

    def delete(self, key: str) -> bool:
        # delete_object succeeds for missing keys
        self._head(key)
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=self._k(key))
        except ClientError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        return True

    def list_contents(self, directory: str = "") -> Iterator[ObjectInfo]:
        directory = directory.strip("/")
        prefix = self._k(directory) + "/" if directory else (self.prefix + "/" if self.prefix else "")

        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for common in page.get("CommonPrefixes") or []:
                    path = self._unprefix(common["Prefix"].rstrip("/"))
                    yield ObjectInfo(path=path, type="dir")
                for obj in page.get("Contents") or []:
                    s3_key = obj.get("Key")
                    # Skip directory placeholder objects
                    if not isinstance(s3_key, str) or s3_key == prefix:
                        continue
                    yield ObjectInfo(path=self._unprefix(s3_key), type="file")
        except ClientError as e:
            raise StorageError(f"Failed to list {directory!r}: {e}") from e

    def get_visibility(self, key: str) -> Optional[Visibility]:
        try:
            acl = self.s3_client.get_object_acl(Bucket=self.bucket, Key=self._k(key))
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageError(f"Failed to read ACL of {key}: {e}") from e

        for grant in acl.get("Grants", []):
            grantee = grant.get("Grantee", {})
            if grantee.get("URI") == ALL_USERS_URI and grant.get("Permission") in ("READ", "FULL_CONTROL"):
                return Visibility.PUBLIC
        return Visibility.PROTECTED

    def set_visibility(self, key: str, visibility: Visibility) -> None:
        try:
            self.s3_client.put_object_acl(
                Bucket=self.bucket,
                Key=self._k(key),
                ACL=_CANNED_ACL[visibility],
            )
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(key) from e
            raise StorageError(f"Failed to change visibility of {key}: {e}") from e

    def get_metadata(self, key: str) -> ObjectMetadata:
        response = self._head(key)
        return ObjectMetadata(
            path=key,
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            mime_type=response.get("ContentType"),
            visibility=self.get_visibility(key),
        )

    def get_mime_type(self, key: str) -> str:
        response = self._head(key)
        return response.get("ContentType") or "application/octet-stream"

    def get_public_url(self, key: str) -> str:
        endpoint = self.s3_client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(self._k(key))}"

    def get_protected_url(self, key: str) -> str:
        return self.s3_client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self._k(key)},
            ExpiresIn=self.presign_expiry,
        )

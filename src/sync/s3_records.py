from __future__ import annotations

import logging
import os
from typing import Iterator, List, Optional
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken

from shared.constants import ENV_BUCKET, ENV_FERNET_KEY, ENV_KEY_PREFIX
from shared.record import RemoteRecord

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "vibestatus/"


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


def _error_code(e: ClientError) -> Optional[str]:
    return e.response.get("Error", {}).get("Code")


class OptimisticLockError(Exception):
    """Raised when an ETag precondition fails during a conditional write."""


class S3RecordStore:
    """
    Remote key-value record store on S3, one encrypted object per record.

    Layout
    - Object key: "{prefix}{record_type}/{record_name}.json"
    - Body: Fernet-encrypted JSON document from `RemoteRecord.to_json()`.
    - The object ETag is exposed as `RemoteRecord.change_tag`.

    Usage
    - `save(record)` creates or overwrites a record and returns the new ETag.
      Passing `if_match` (usually the `change_tag` of a fetched record) makes
      the write conditional; a mismatch raises `OptimisticLockError`.
    - `fetch(...)` returns None for a missing record.
    - `query(record_type)` returns every decodable record of that type.

    Environment variables (optional)
    - `VIBESTATUS_BUCKET`:     S3 bucket holding the records
    - `VIBESTATUS_KEY_PREFIX`: key prefix (default "vibestatus/")
    - `VIBESTATUS_FERNET_KEY`: urlsafe base64-encoded key for Fernet
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        fernet_key: str | bytes,
        prefix: str = DEFAULT_KEY_PREFIX,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._bucket = bucket
        self._prefix = prefix
        self._fernet = _to_fernet(fernet_key)

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "S3RecordStore":
        bucket = os.environ.get(ENV_BUCKET)
        fkey = os.environ.get(ENV_FERNET_KEY)
        if not bucket or not fkey:
            missing = [name for name, val in [(ENV_BUCKET, bucket), (ENV_FERNET_KEY, fkey)] if not val]
            raise RuntimeError(
                f"Missing required environment variables for S3 record store: {', '.join(missing)}"
            )
        prefix = os.environ.get(ENV_KEY_PREFIX) or DEFAULT_KEY_PREFIX
        return cls(bucket=bucket, fernet_key=fkey, prefix=prefix)

    def object_key(self, record_type: str, record_name: str) -> str:
        return f"{self._prefix}{record_type}/{record_name}.json"

    # -------- Core operations --------
    def fetch(self, record_type: str, record_name: str) -> Optional[RemoteRecord]:
        """Read and decrypt one record.

        Returns None if the object does not exist.
        Raises:
        - ValueError if decryption fails or content is not a record document.
        - botocore.exceptions.ClientError for other S3 issues.
        """
        key = self.object_key(record_type, record_name)
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404"):
                return None
            raise

        body = resp["Body"].read()
        return self._decode(body, key=key, etag=resp.get("ETag"))

    def save(self, record: RemoteRecord, *, if_match: Optional[str] = None) -> str:
        """Encrypt and write a record; returns the new ETag.

        When `if_match` is given, the destination is only replaced if its
        current ETag matches. S3 PutObject has no If-Match, so the body goes to
        a temporary key first and is then copied over the destination with an
        If-Match precondition.
        """
        key = self.object_key(record.record_type, record.record_name)
        ciphertext = self._fernet.encrypt(record.to_json())

        if if_match is None:
            resp = self._s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=ciphertext,
                ContentType="application/octet-stream",
            )
            etag = str(resp.get("ETag"))
            record.change_tag = etag
            return etag

        temp_key = f"{key}.tmp-{uuid4().hex}"
        self._s3.put_object(
            Bucket=self._bucket,
            Key=temp_key,
            Body=ciphertext,
            ContentType="application/octet-stream",
        )
        try:
            resp = self._s3.copy_object(
                Bucket=self._bucket,
                Key=key,
                CopySource={"Bucket": self._bucket, "Key": temp_key},
                IfMatch=if_match,
                MetadataDirective="COPY",
            )
        except ClientError as e:
            if _error_code(e) in ("PreconditionFailed", "412"):
                raise OptimisticLockError(f"ETag mismatch for s3://{self._bucket}/{key}") from e
            raise
        finally:
            try:
                self._s3.delete_object(Bucket=self._bucket, Key=temp_key)
            except ClientError as e:
                logger.warning("Failed to remove temporary object %s: %s", temp_key, _error_code(e))

        etag = str(resp.get("ETag"))
        record.change_tag = etag
        return etag

    def delete(self, record_type: str, record_name: str) -> bool:
        """Delete a record; returns False if it was already gone."""
        key = self.object_key(record_type, record_name)
        try:
            self._s3.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404", "NotFound"):
                return False
            raise
        self._s3.delete_object(Bucket=self._bucket, Key=key)
        return True

    def query(self, record_type: str) -> List[RemoteRecord]:
        """Return all records of a type; undecodable objects are skipped with a warning."""
        records: List[RemoteRecord] = []
        for key in self._iter_keys(record_type):
            try:
                resp = self._s3.get_object(Bucket=self._bucket, Key=key)
            except ClientError as e:
                # Deleted between listing and reading
                if _error_code(e) in ("NoSuchKey", "404"):
                    continue
                raise
            try:
                records.append(self._decode(resp["Body"].read(), key=key, etag=resp.get("ETag")))
            except ValueError as ex:
                logger.warning("Skipping unreadable record %s: %s", key, ex)
        return records

    # -------- Internals --------
    def _iter_keys(self, record_type: str) -> Iterator[str]:
        prefix = f"{self._prefix}{record_type}/"
        token: Optional[str] = None
        while True:
            kwargs = {"Bucket": self._bucket, "Prefix": prefix}
            if token:
                kwargs["ContinuationToken"] = token
            resp = self._s3.list_objects_v2(**kwargs)
            for item in resp.get("Contents", []):
                key = item.get("Key", "")
                # Leftover temporaries from interrupted conditional writes
                if key.endswith(".json"):
                    yield key
            if not resp.get("IsTruncated"):
                return
            token = resp.get("NextContinuationToken")

    def _decode(self, body: bytes, *, key: str, etag: Optional[str]) -> RemoteRecord:
        try:
            decrypted = self._fernet.decrypt(body)
        except InvalidToken as ex:
            raise ValueError(f"Failed to decrypt record {key}: invalid Fernet token") from ex

        try:
            return RemoteRecord.from_json(decrypted, change_tag=etag)
        except ValueError as ex:
            raise ValueError(f"Failed to parse record {key}") from ex

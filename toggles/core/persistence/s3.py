from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from toggles.core.errors import BackendError
from toggles.core.persistence.base import Persistence
from toggles.core.persistence.models import Snapshot

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3Persistence(Persistence):
    """
    Snapshot kept as one object in an S3-compatible bucket, at
    `<prefix><object_name>`.
    """

    def __init__(self, client: Any, bucket: str, *, prefix: str = "", object_name: str = "current.json"):
        self.client = client
        self.bucket = bucket
        self.prefix = prefix
        self.object_name = object_name

    @classmethod
    def from_config(
        cls,
        bucket: str,
        *,
        prefix: str = "",
        object_name: str = "current.json",
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
    ) -> "S3Persistence":
        cfg = Config(
            connect_timeout=float(timeout_seconds),
            read_timeout=float(timeout_seconds),
            retries={"max_attempts": int(max_attempts), "mode": "standard"},
        )
        client = boto3.client("s3", region_name=region_name, endpoint_url=endpoint_url, config=cfg)
        return cls(client, bucket, prefix=prefix, object_name=object_name)

    @property
    def key(self) -> str:
        return f"{self.prefix}{self.object_name}"

    def load(self) -> Optional[Snapshot]:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=self.key)
            body = resp["Body"]
            try:
                data = body.read()
            finally:
                body.close()
        except ClientError as e:
            code = str((e.response.get("Error") or {}).get("Code") or "")
            if code in NOT_FOUND_CODES:
                return None
            raise BackendError(f"S3 GET s3://{self.bucket}/{self.key} failed: {code or e}", operation="load", bucket=self.bucket, key=self.key) from e
        except BotoCoreError as e:
            raise BackendError(f"S3 GET s3://{self.bucket}/{self.key} failed: {e}", operation="load", bucket=self.bucket, key=self.key) from e
        return Snapshot.from_bytes(data)

    def save(self, snapshot: Snapshot) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=snapshot.to_bytes(),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"S3 PUT s3://{self.bucket}/{self.key} failed: {e}", operation="save", bucket=self.bucket, key=self.key) from e

    def __repr__(self) -> str:
        return f"S3Persistence(bucket={self.bucket!r}, key={self.key!r})"

from __future__ import annotations

import json
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from common.config import RemoteConfig
from common.logs import get_logger

from .envelope import Envelope
from .remote import RemoteUnavailable, RemoteWriteError


log = get_logger("state.s3_store")


class S3RemoteStore:
    """
    Envelope objects in S3, one per household.

    Layout
    - Key: `{prefix}{household_id}.json`
    - Body: the envelope wire JSON. The envelope is already encrypted, so no
      further server-side transformation is needed.

    `fetch` returns None for a missing object and for any client or transport
    failure, and raises EnvelopeError when the object is not a readable
    envelope; `upsert` surfaces failures as RemoteWriteError.
    """

    def __init__(self, config: RemoteConfig, *, s3: Optional[object] = None) -> None:
        self._config = config
        if s3 is None and config.available:
            s3 = boto3.client(
                "s3",
                region_name=config.region,
                config=Config(
                    connect_timeout=config.timeout,
                    read_timeout=config.timeout,
                    retries={"max_attempts": config.max_attempts, "mode": "standard"},
                ),
            )
        self._s3 = s3

    def available(self) -> bool:
        return self._config.available

    def key_for(self, household_id: str) -> str:
        return f"{self._config.prefix}{household_id}.json"

    def fetch(self, household_id: str) -> Optional[Envelope]:
        if not self.available() or self._s3 is None:
            return None
        key = self.key_for(household_id)
        try:
            resp = self._s3.get_object(Bucket=self._config.bucket, Key=key)
            body = resp["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            log.warning("remote_fetch_failed", backend="s3", key=key, code=code)
            return None
        except BotoCoreError as e:
            log.warning("remote_fetch_unavailable", backend="s3", key=key, error=str(e))
            return None

        return Envelope.from_wire(body)

    def upsert(self, household_id: str, envelope: Envelope) -> None:
        if not self.available() or self._s3 is None:
            raise RemoteUnavailable("S3 remote store is not configured")
        key = self.key_for(household_id)
        body = json.dumps(envelope.to_wire(), separators=(",", ":")).encode("utf-8")
        try:
            self._s3.put_object(
                Bucket=self._config.bucket,
                Key=key,
                Body=body,
                ContentType="application/json",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            raise RemoteWriteError(f"S3 put failed for s3://{self._config.bucket}/{key} ({code})") from e
        except BotoCoreError as e:
            raise RemoteWriteError(f"S3 put failed for s3://{self._config.bucket}/{key}") from e


__all__ = ["S3RemoteStore"]

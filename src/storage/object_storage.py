from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

import boto3

from src.errors import DocumentMissingError, StorageError
from src.integrations.contracts.accident import ArchivedDocument
from src.utils.config_loader import ObjectStorageConfig, require_env

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def _clean_segment(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip())
    return cleaned or "object"


def create_s3_client(config: ObjectStorageConfig, environ: Optional[Mapping[str, str]] = None) -> Any:
    env = require_env(config.access_key_env, config.secret_key_env, environ=environ)
    session = boto3.session.Session(
        aws_access_key_id=env[config.access_key_env],
        aws_secret_access_key=env[config.secret_key_env],
        region_name=config.region or None,
    )
    return session.client("s3", endpoint_url=config.endpoint or None)


class DocumentArchiver:
    """Stores policy documents in the bucket and hands out signed links."""

    def __init__(
        self,
        config: Optional[ObjectStorageConfig] = None,
        *,
        client: Any = None,
        environ: Optional[Mapping[str, str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or ObjectStorageConfig()
        self._client = client
        self._environ = environ
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_s3_client(self.config, self._environ)
        return self._client

    def check_config(self) -> None:
        if self._client is None:
            require_env(self.config.access_key_env, self.config.secret_key_env, environ=self._environ)

    def key_for(self, policy_number: str, ext: str = "pdf") -> str:
        folder = self.config.folder.strip("/")
        return f"{folder}/{_clean_segment(policy_number)}.{ext}"

    def archive(self, policy_number: str, document_base64: Optional[str]) -> ArchivedDocument:
        if not document_base64:
            raise DocumentMissingError("Policy document missing in partner response", operation="fetch_document")
        try:
            content = base64.b64decode(document_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DocumentMissingError(
                "Policy document in partner response is not valid base64", operation="fetch_document"
            ) from exc
        if not content:
            raise DocumentMissingError("Policy document in partner response is empty", operation="fetch_document")

        key = self.key_for(policy_number)
        ttl = self.config.url_ttl_seconds
        client = self.client
        try:
            client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=content,
                ContentType=PDF_CONTENT_TYPE,
            )
            url = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": key},
                ExpiresIn=ttl,
            )
        except Exception as exc:
            logger.error("Archiving %s to bucket %s failed: %s", key, self.config.bucket, exc)
            raise StorageError(f"Failed to archive policy document {key}: {exc}") from exc

        logger.info("Archived policy document %s (%d bytes)", key, len(content))
        return ArchivedDocument(key=key, url=url, expires_at=self._clock() + timedelta(seconds=ttl))

"""S3-compatible object store client (AWS S3, MinIO, SeaweedFS)."""

import logging
from collections.abc import Iterator
from typing import Any, BinaryIO

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .base import ObjectDescriptor, ObjectStoreClient, StorageObject
from .exceptions import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

log = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024

_ERROR_CODE_MAP = {
    "NoSuchKey": StorageNotFoundError,
    "404": StorageNotFoundError,
    "NotFound": StorageNotFoundError,
    "AccessDenied": StoragePermissionError,
    "403": StoragePermissionError,
    "InvalidAccessKeyId": StoragePermissionError,
    "SignatureDoesNotMatch": StoragePermissionError,
}

_CONNECTION_ERRORS = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)


class S3StorageClient(ObjectStoreClient):
    """S3-compatible object store client bound to a single bucket.

    ``client_config`` is passed through to ``boto3.client("s3", ...)``
    (``region_name``, ``endpoint_url``, credentials). A nested ``config``
    mapping is merged over the default botocore ``Config``.
    """

    def __init__(
        self,
        bucket_name: str,
        client_config: dict[str, Any] | None = None,
        client: BaseClient | None = None,
    ):
        if not bucket_name:
            raise ValueError("bucket_name cannot be empty")

        self._bucket = bucket_name
        kwargs: dict[str, Any] = dict(client_config or {})

        if client is not None:
            self._client = client
            return

        botocore_config = Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
        )
        extra_config = kwargs.pop("config", None)
        if isinstance(extra_config, dict):
            botocore_config = botocore_config.merge(Config(**extra_config))
        elif isinstance(extra_config, Config):
            botocore_config = botocore_config.merge(extra_config)
        kwargs["config"] = botocore_config

        self._client = boto3.client("s3", **kwargs)

    @property
    def bucket_name(self) -> str:
        return self._bucket

    def get_object(self, key: str) -> StorageObject:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

        body = response.get("Body")
        if body is None:
            raise StorageError("Unable to fetch object: response has no body", key=key)

        descriptor = ObjectDescriptor(
            key=key,
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType", "application/octet-stream"),
            metadata=response.get("Metadata", {}),
        )
        return StorageObject(
            descriptor=descriptor,
            body=self._iter_body(body, key),
            on_close=body.close,
        )

    def put_object(self, key: str, stream: BinaryIO, content_type: str) -> None:
        try:
            # upload_fileobj switches to multipart once the stream outgrows one part
            self._client.upload_fileobj(
                Fileobj=stream,
                Bucket=self._bucket,
                Key=key,
                ExtraArgs={"ContentType": content_type},
            )
        except S3UploadFailedError as e:
            raise StorageError(str(e), key=key, cause=e) from e
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        log.debug("Uploaded s3://%s/%s", self._bucket, key)

    def _iter_body(self, body: Any, key: str) -> Iterator[bytes]:
        try:
            yield from body.iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE)
        except BotoCoreError as e:
            raise self._translate_error(e, key) from e

    def _translate_error(self, error: Exception, key: str | None = None) -> StorageError:
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            exc_cls = _ERROR_CODE_MAP.get(code, StorageError)
            return exc_cls(str(error), key=key, cause=error)
        if isinstance(error, _CONNECTION_ERRORS):
            return StorageConnectionError(str(error), key=key, cause=error)
        return StorageError(str(error), key=key, cause=error)

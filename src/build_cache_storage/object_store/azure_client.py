"""Azure Blob Storage object store client."""

import logging
from typing import Any, BinaryIO

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from .base import ObjectDescriptor, ObjectStoreClient, StorageObject
from .exceptions import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

log = logging.getLogger(__name__)


class AzureBlobStorageClient(ObjectStoreClient):
    """Azure Blob Storage client bound to a single container."""

    def __init__(
        self,
        container_name: str | None = None,
        connection_string: str | None = None,
        account_name: str | None = None,
        account_key: str | None = None,
        credential: Any | None = None,
        container_client: ContainerClient | None = None,
    ):
        if container_client is not None:
            self._container_client = container_client
            self._container_name = container_client.container_name
            return

        if not container_name:
            raise ValueError("container_name is required when no container_client is given")
        self._container_name = container_name

        if connection_string:
            service_client = BlobServiceClient.from_connection_string(
                connection_string, credential=credential
            )
        elif account_name and (account_key or credential):
            account_url = f"https://{account_name}.blob.core.windows.net"
            service_client = BlobServiceClient(
                account_url=account_url, credential=credential or account_key
            )
        else:
            raise ValueError(
                "Azure Blob Storage requires either connection_string, "
                "account_name + account_key/credential, or a container_client"
            )

        self._container_client = service_client.get_container_client(container_name)

    @property
    def container_name(self) -> str:
        return self._container_name

    def get_object(self, key: str) -> StorageObject:
        try:
            blob_client = self._container_client.get_blob_client(key)
            download = blob_client.download_blob()
        except AzureError as e:
            raise self._translate_error(e, key) from e

        properties = download.properties
        descriptor = ObjectDescriptor(
            key=key,
            content_length=download.size,
            content_type=properties.content_settings.content_type or "application/octet-stream",
            metadata=properties.metadata or {},
        )
        return StorageObject(descriptor=descriptor, body=self._iter_chunks(download, key))

    def put_object(self, key: str, stream: BinaryIO, content_type: str) -> None:
        try:
            blob_client = self._container_client.get_blob_client(key)
            blob_client.upload_blob(
                stream,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            raise self._translate_error(e, key) from e
        log.debug("Uploaded blob %s/%s", self._container_name, key)

    def _iter_chunks(self, download: Any, key: str):
        try:
            yield from download.chunks()
        except AzureError as e:
            raise self._translate_error(e, key) from e

    def _translate_error(self, error: Exception, key: str | None = None) -> StorageError:
        if isinstance(error, ResourceNotFoundError):
            return StorageNotFoundError(str(error), key=key, cause=error)
        if isinstance(error, ClientAuthenticationError):
            return StoragePermissionError(str(error), key=key, cause=error)
        if isinstance(error, HttpResponseError) and error.status_code == 403:
            return StoragePermissionError(str(error), key=key, cause=error)
        if isinstance(error, (ServiceRequestError, ServiceResponseError, ConnectionError)):
            return StorageConnectionError(str(error), key=key, cause=error)
        return StorageError(str(error), key=key, cause=error)

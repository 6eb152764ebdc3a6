"""
Pydantic models for cache storage provider configuration.

Serialized options are JSON objects with camelCase keys (``maxSize``,
``clientConfig``, ...). Validation checks shape only: required fields are
present and every field has the right primitive kind.
"""

import logging
import os
from collections.abc import Callable, Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from .exceptions import ConfigurationError

log = logging.getLogger(__name__)

PROVIDER_ENV_VAR = "BUILD_CACHE_PROVIDER"
PROVIDER_OPTIONS_ENV_VAR = "BUILD_CACHE_PROVIDER_OPTIONS"


def _byte_count(value: int | float) -> int:
    # whole-number floats such as 1e9 are valid sizes
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("size must be a whole number of bytes")
    if value <= 0:
        raise ValueError("size must be greater than 0")
    return int(value)


SizeLimit = Annotated[Union[StrictInt, StrictFloat], AfterValidator(_byte_count)]


class CacheConfigBase(BaseModel):
    """Base model: camelCase aliases, immutable, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class S3CacheStorageOptions(CacheConfigBase):
    """Options for the S3-compatible object store backend."""

    bucket: StrictStr
    prefix: Optional[StrictStr] = None
    client_config: Optional[dict[str, Any]] = Field(
        default=None,
        description="Keyword arguments for boto3.client('s3'), e.g. region_name, endpoint_url.",
    )
    max_size: Optional[SizeLimit] = None


class AzureBlobConnectionOptions(CacheConfigBase):
    """Azure Blob options addressing the container through a connection string."""

    connection_string: StrictStr
    container: StrictStr
    max_size: Optional[SizeLimit] = None
    credential: Optional[Any] = None


class AzureBlobContainerClientOptions(CacheConfigBase):
    """Azure Blob options carrying a ready-made ContainerClient."""

    container_client: Any
    max_size: Optional[SizeLimit] = None


AzureBlobCacheStorageOptions = Union[AzureBlobConnectionOptions, AzureBlobContainerClientOptions]


class NpmCacheStorageOptions(CacheConfigBase):
    """Options for the registry package backend."""

    npm_package_name: StrictStr
    registry_url: StrictStr
    npmrc_userconfig: Optional[StrictStr] = None


class LocalCacheStorageConfig(CacheConfigBase):
    provider: Literal["local"] = "local"


class LocalSkipCacheStorageConfig(CacheConfigBase):
    provider: Literal["local-skip"] = "local-skip"


class NpmCacheStorageConfig(CacheConfigBase):
    provider: Literal["npm"] = "npm"
    options: NpmCacheStorageOptions


class AzureBlobCacheStorageConfig(CacheConfigBase):
    provider: Literal["azure-blob"] = "azure-blob"
    options: AzureBlobCacheStorageOptions


class S3CacheStorageConfig(CacheConfigBase):
    provider: Literal["s3"] = "s3"
    options: S3CacheStorageOptions


class CustomStorageConfig(CacheConfigBase):
    """Caller-supplied backend.

    ``provider`` is called with the working directory and must return an
    object implementing ``fetch`` and ``put``.
    """

    provider: Callable[[str], Any]
    name: Optional[str] = None


BuiltinCacheStorageConfig = Annotated[
    Union[
        LocalCacheStorageConfig,
        LocalSkipCacheStorageConfig,
        NpmCacheStorageConfig,
        AzureBlobCacheStorageConfig,
        S3CacheStorageConfig,
    ],
    Field(discriminator="provider"),
]

CacheStorageConfig = Union[BuiltinCacheStorageConfig, CustomStorageConfig]

BUILTIN_PROVIDERS = ("local", "local-skip", "npm", "azure-blob", "s3")

_builtin_config_adapter = TypeAdapter(BuiltinCacheStorageConfig)


def _parse_serialized_options(model: type[CacheConfigBase], options: str, provider: str):
    try:
        return model.model_validate_json(options)
    except ValidationError as e:
        log.error("Invalid %s storage options: %s", provider, e)
        raise ConfigurationError(f"Invalid {provider} storage options", provider=provider) from e


def get_npm_config_from_serialized_options(options: str) -> NpmCacheStorageConfig:
    parsed = _parse_serialized_options(NpmCacheStorageOptions, options, "npm")
    return NpmCacheStorageConfig(options=parsed)


def get_azure_blob_config_from_serialized_options(options: str) -> AzureBlobCacheStorageConfig:
    parsed = _parse_serialized_options(AzureBlobConnectionOptions, options, "azure-blob")
    return AzureBlobCacheStorageConfig(options=parsed)


def get_s3_config_from_serialized_options(options: str) -> S3CacheStorageConfig:
    parsed = _parse_serialized_options(S3CacheStorageOptions, options, "s3")
    return S3CacheStorageConfig(options=parsed)


_SERIALIZED_PARSERS: dict[str, Callable[[str], Any]] = {
    "npm": get_npm_config_from_serialized_options,
    "azure-blob": get_azure_blob_config_from_serialized_options,
    "s3": get_s3_config_from_serialized_options,
}


def get_cache_storage_config(provider: str, options: str | None = None) -> CacheStorageConfig:
    """Build a provider configuration from a tag and its serialized options.

    Args:
        provider: One of ``local``, ``local-skip``, ``npm``, ``azure-blob``, ``s3``.
        options: JSON encoded options. Ignored by the local providers.

    Raises:
        ConfigurationError: If the tag is unknown or the options are malformed.
    """
    tag = provider.strip().lower()

    if tag == "local":
        return LocalCacheStorageConfig()
    if tag == "local-skip":
        return LocalSkipCacheStorageConfig()

    parser = _SERIALIZED_PARSERS.get(tag)
    if parser is None:
        log.error("Unknown cache provider %r. Supported: %s", provider, ", ".join(BUILTIN_PROVIDERS))
        raise ConfigurationError(f"Unknown cache provider: {provider!r}", provider=provider)
    if options is None:
        log.error("No options supplied for cache provider %r", tag)
        raise ConfigurationError(f"Missing {tag} storage options", provider=tag)
    return parser(options)


def get_cache_storage_config_from_env(
    environ: Mapping[str, str] | None = None,
) -> CacheStorageConfig:
    """Read the provider tag and its options from the environment.

    Uses ``BUILD_CACHE_PROVIDER`` (defaults to ``local``) and
    ``BUILD_CACHE_PROVIDER_OPTIONS``.
    """
    env = os.environ if environ is None else environ
    provider = env.get(PROVIDER_ENV_VAR) or "local"
    return get_cache_storage_config(provider, env.get(PROVIDER_OPTIONS_ENV_VAR))


def validate_cache_storage_config(data: Mapping[str, Any] | CacheStorageConfig) -> CacheStorageConfig:
    """Validate an already decoded configuration mapping.

    A mapping whose ``provider`` is callable becomes a CustomStorageConfig;
    every other mapping must carry one of the built-in provider tags.
    """
    if isinstance(data, CacheConfigBase):
        return data

    provider = data.get("provider")
    try:
        if callable(provider):
            return CustomStorageConfig.model_validate(dict(data))
        return _builtin_config_adapter.validate_python(dict(data))
    except ValidationError as e:
        label = provider if isinstance(provider, str) else "custom"
        log.error("Invalid cache storage configuration for %s: %s", label, e)
        raise ConfigurationError(f"Invalid {label} storage configuration", provider=label) from e

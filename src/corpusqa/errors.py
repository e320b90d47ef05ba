"""Exception hierarchy shared by the corpusqa services."""

from __future__ import annotations


class CorpusQAError(RuntimeError):
    """Base class for errors raised by corpusqa."""


# Configuration errors are never retried.


class ProviderConfigurationError(CorpusQAError):
    """Raised when the stored provider configuration cannot be used."""


class UnsupportedProviderError(ProviderConfigurationError):
    """Raised for a provider type tag that has no backend."""

    def __init__(self, kind: str, provider_type: str) -> None:
        super().__init__(f"unsupported {kind} provider type: {provider_type}")
        self.kind = kind
        self.provider_type = provider_type


class InvalidProviderSettingsError(ProviderConfigurationError):
    """Raised when the settings payload does not match the declared type tag."""


class ProviderValidationError(ProviderConfigurationError):
    """Raised when a provider settings payload fails validation."""


class NoActiveProviderError(ProviderConfigurationError):
    """Raised when an operation needs an active provider and none is configured."""


class ProviderLookupError(CorpusQAError):
    """Raised when the active provider cannot be read from storage."""


# Upstream provider errors are surfaced to the caller and not retried.


class ProviderRequestError(CorpusQAError):
    """Raised when a call to a remote provider fails."""


class ProviderRequestBuildError(ProviderRequestError):
    """Raised when the request to the provider cannot be constructed."""


class ProviderTransportError(ProviderRequestError):
    """Raised when the request could not be sent."""


class ProviderStatusError(ProviderRequestError):
    """Raised for a non-success HTTP status from the provider."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"unexpected status code: {status_code}, body: {body}")
        self.status_code = status_code
        self.body = body


class ProviderDecodeError(ProviderRequestError):
    """Raised when the provider response cannot be decoded."""


class EmptyProviderResponseError(ProviderRequestError):
    """Raised when the provider answered without any usable data."""


# Collector


class CollectionError(CorpusQAError):
    """Base class for collector failures."""


class CollectionFailedError(CollectionError):
    """Raised when every attempt to fetch from a datasource failed."""

    def __init__(self, datasource_id: object, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"collection from datasource {datasource_id} failed after {attempts} attempts: {last_error}")
        self.datasource_id = datasource_id
        self.attempts = attempts
        self.last_error = last_error


class CollectionCancelledError(CollectionError):
    """Raised when a collection run is cancelled while waiting to retry."""


class CollectionInProgressError(CollectionError):
    """Raised when a collection for the same datasource is already running."""


class DatasourceConfigurationError(CollectionError):
    """Raised when a datasource cannot be built from its stored configuration."""


# Storage


class NotFoundError(CorpusQAError):
    """Raised when a stored record does not exist."""


class DatasourceNotFoundError(NotFoundError):
    pass


class EmbeddingProviderNotFoundError(NotFoundError):
    pass


class LLMProviderNotFoundError(NotFoundError):
    pass


class InteractionNotFoundError(NotFoundError):
    pass

"""Firestore client - connection, credentials and retry only."""

import os
from collections.abc import Awaitable, Callable
from typing import TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from graincalc.core.config import Settings, settings as default_settings

T = TypeVar("T")

# =============================================================================
# Retry Configuration
# =============================================================================

MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 10

# Transient backend conditions (5xx, 429, deadline) worth another attempt
RETRYABLE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.ResourceExhausted,
)


# =============================================================================
# Exceptions
# =============================================================================


class DocumentStoreError(Exception):
    """Base class for document store failures."""

    pass


class RetryableError(DocumentStoreError):
    """Transient error that should be retried (unavailable, deadline exceeded, 5xx)."""

    pass


class DocumentStoreAPIError(DocumentStoreError):
    """Non-retryable error from the document store API."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class DocumentNotFoundError(DocumentStoreError, LookupError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Document {collection}/{document_id} not found")


# =============================================================================
# Client
# =============================================================================


class FirestoreClient:
    """Firestore SDK clients bound to one project/database.

    ``db`` is the async client used for reads and writes. ``listener_db`` is
    the synchronous client, which is the one that supports ``on_snapshot``
    listeners. Both are created on first use.
    """

    def __init__(self, config: Settings | None = None):
        self.settings = config or default_settings
        if not self.settings.firestore_project_id:
            raise ValueError("firestore_project_id is not configured")
        self._db: firestore.AsyncClient | None = None
        self._listener_db: firestore.Client | None = None

    def _build(self, client_class):
        if self.settings.firestore_emulator_host:
            # The SDK only discovers the emulator through the environment
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", self.settings.firestore_emulator_host)

        kwargs = {
            "project": self.settings.firestore_project_id,
            "database": self.settings.firestore_database,
        }
        if self.settings.firestore_credentials_file:
            return client_class.from_service_account_json(self.settings.firestore_credentials_file, **kwargs)
        return client_class(**kwargs)

    @property
    def db(self) -> firestore.AsyncClient:
        if self._db is None:
            self._db = self._build(firestore.AsyncClient)
        return self._db

    @property
    def listener_db(self) -> firestore.Client:
        if self._listener_db is None:
            self._listener_db = self._build(firestore.Client)
        return self._listener_db

    @property
    def timeout(self) -> float:
        return self.settings.request_timeout_seconds

    @retry(
        retry=retry_if_exception_type(RetryableError),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential_jitter(initial=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS, jitter=2),
        reraise=True,
    )
    async def call_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one SDK call with automatic retry on transient errors.

        ``operation`` is called afresh for every attempt, so pass a function
        that starts the call rather than an already-created coroutine.

        Retries on:
        - Service unavailable / internal errors
        - Deadline exceeded
        - Resource exhausted (rate limiting)

        After MAX_RETRIES failures, the last RetryableError is re-raised.

        Raises:
            RetryableError: If all retries fail
            DocumentStoreAPIError: If a non-retryable error occurs (status_code is the HTTP equivalent)
        """
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            raise RetryableError(f"HTTP {e.code}: {e.message}") from e
        except google_exceptions.RetryError as e:
            raise RetryableError(f"Gave up after SDK retries: {e}") from e
        except google_exceptions.GoogleAPICallError as e:
            raise DocumentStoreAPIError(f"HTTP {e.code}: {e.message}", e.code) from e

"""Factory for aggregate store instances."""

from ratings_api.adapters.store.base import AbstractAggregateStore
from ratings_api.adapters.store.in_memory import InMemoryAggregateStore
from ratings_api.core.config import StoreSettings
from ratings_api.core.errors import ValidationAppError


def create_store(store_settings: StoreSettings) -> AbstractAggregateStore:
    """Instantiate the store backend named in settings.

    Validates backend-specific requirements before any connection is made.

    Returns:
        AbstractAggregateStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    backend = store_settings.backend.lower()

    if backend == "memory":
        if store_settings.seed_path:
            return InMemoryAggregateStore.from_json_file(store_settings.seed_path)
        return InMemoryAggregateStore()

    if backend == "firebase":
        if not store_settings.firebase_credentials_path:
            raise ValidationAppError(
                code="store_missing_credentials",
                message="Firebase backend requires STORE_FIREBASE_CREDENTIALS_PATH",
            )
        if not store_settings.firebase_database_url:
            raise ValidationAppError(
                code="store_missing_database_url",
                message="Firebase backend requires STORE_FIREBASE_DATABASE_URL",
            )
        # Imported lazily so the memory backend works without the SDK configured
        from ratings_api.adapters.store.firebase import FirebaseAggregateStore

        return FirebaseAggregateStore(
            credentials_path=store_settings.firebase_credentials_path,
            database_url=store_settings.firebase_database_url,
            root_path=store_settings.root_path,
            timeout_seconds=store_settings.timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=(
            f"Unknown store backend: '{backend}'. Supported backends: memory, firebase"
        ),
    )

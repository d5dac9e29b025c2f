"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps. Nothing in here knows
about videos or uploads.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer (logger, atomic)

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and categories
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (duplicates, concurrent writers)
    - LockAcquisitionError: Lock could not be taken in time
    - StorageError: Persisting data failed

Exception handler (import from core.exception_handler):
    - application_exception_handler: DRF handler rendering the error envelope

Protocols (import from core.protocols):
    - KeyValueStore: Versioned key-value interface with per-key locks

Key-value stores (import from core.kvstore):
    - InMemoryKeyValueStore: Single-process store for tests and development
    - RedisKeyValueStore: Shared store on the default django-redis cache

Locks (import from core.locks):
    - DistributedLock: Redis SET NX lock with token-checked release

Helpers (import from core.helpers):
    - generate_token: Random hex token
    - is_hex_token: Token format check
    - hash_string: String hashing

Usage:
    from core.models import BaseModel
    from core.services import BaseService
    from core.exceptions import ValidationError, NotFoundError
    from core.kvstore import InMemoryKeyValueStore
    from core.helpers import generate_token

Note:
    - Business logic should NOT go here. Extend core classes in your domain apps.
    - Django models, the key-value stores, the locks and the DRF exception
      handler are NOT imported here to avoid AppRegistryNotReady errors.
      Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService

# Exceptions (no Django model dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    LockAcquisitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)

# Protocols (no Django dependencies)
from .protocols import KeyValueStore

# Helpers (no Django dependencies)
from .helpers import generate_token, hash_string, is_hex_token

__all__ = [
    # Services
    "BaseService",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "LockAcquisitionError",
    "StorageError",
    # Protocols
    "KeyValueStore",
    # Helpers
    "generate_token",
    "is_hex_token",
    "hash_string",
]

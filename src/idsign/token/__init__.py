"""Local token access.

Provides token backends behind one capability:
- PKCS11Token: ID card through PKCS#11 reader middleware
- SoftwareToken: In-memory key for development and tests
- TokenAdapter: Backend selection plus fetch-certificate and sign
"""

from idsign.token.adapter import TokenAdapter
from idsign.token.base import (
    BackendMode,
    BackendUnavailableError,
    DeclineReason,
    TokenBackend,
    TokenCapability,
    TokenDeclinedError,
    TokenError,
)

__all__ = [
    "BackendMode",
    "BackendUnavailableError",
    "DeclineReason",
    "TokenAdapter",
    "TokenBackend",
    "TokenCapability",
    "TokenDeclinedError",
    "TokenError",
]

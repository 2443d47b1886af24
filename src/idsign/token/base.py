"""Base interfaces for local token access.

Token flow:
1. Select a backend (fails if the middleware is not available)
2. Read the signer certificate from the token
3. Sign a service-supplied hash on the token (PIN entry happens here)

The private key never leaves the token; backends return signatures only.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Optional

from idsign.models import Certificate, HashToSign, Signature, TokenOptions

logger = logging.getLogger(__name__)


class BackendMode(str, Enum):
    """Token access mode."""
    AUTO = "auto"           # First configured backend
    PKCS11 = "pkcs11"       # Smart card through PKCS#11 middleware
    SOFTWARE = "software"   # Key file in memory (development)


class DeclineReason(str, Enum):
    """Why a token operation did not complete. Logged, never shown."""
    CANCELLED = "cancelled"
    NO_CARD = "no_card"
    NO_CERTIFICATE = "no_certificate"
    WRONG_PIN = "wrong_pin"
    PIN_LOCKED = "pin_locked"
    TOKEN_ERROR = "token_error"


# Asks the user for the signing PIN; None means the user cancelled
PinPrompt = Callable[[TokenOptions], Awaitable[Optional[str]]]


class TokenBackend(ABC):
    """Abstract base class for token backends."""

    def __init__(self, mode: BackendMode):
        self.mode = mode

    @abstractmethod
    async def get_certificate(self, options: TokenOptions) -> Certificate:
        """Read the signing certificate.

        Args:
            options: Token UI options

        Returns:
            Certificate with a key_ref the backend can sign with

        Raises:
            TokenDeclinedError: No card, no certificate, cancelled or reader error
        """
        pass

    @abstractmethod
    async def sign(
        self,
        certificate: Certificate,
        hash_to_sign: HashToSign,
        options: TokenOptions,
    ) -> bytes:
        """Sign a digest with the key belonging to certificate.

        Raises:
            TokenDeclinedError: Wrong PIN, cancelled or token error
        """
        pass

    async def health_check(self) -> bool:
        """Check if the backend can be used at all.

        Returns:
            True if the middleware or key material is available
        """
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(mode={self.mode.value})"


class TokenCapability(ABC):
    """Capability the coordinator uses to reach the signer's token.

    select_backend returns the backend as a handle owned by the calling
    session; the session passes it back to fetch_certificate and sign, so
    concurrent sessions never share a selection.
    """

    @abstractmethod
    async def select_backend(self, mode: BackendMode) -> Optional[TokenBackend]:
        """Select and initialize a backend; None if it is unavailable."""

    @abstractmethod
    async def fetch_certificate(self, backend: TokenBackend, options: TokenOptions) -> Certificate:
        """Read the signing certificate from backend; raises TokenDeclinedError."""

    @abstractmethod
    async def sign(
        self,
        backend: TokenBackend,
        certificate: Certificate,
        hash_to_sign: HashToSign,
        options: TokenOptions,
    ) -> Signature:
        """Sign hash_to_sign with the key of certificate; raises TokenDeclinedError."""


class TokenError(Exception):
    """Exception raised by token access."""
    pass


class BackendUnavailableError(TokenError):
    """Exception raised when no usable backend is selected."""
    pass


class TokenDeclinedError(TokenError):
    """Exception raised when a token operation is declined.

    Covers user cancellation, missing card, wrong PIN and reader errors.
    """

    def __init__(self, reason: DeclineReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)

"""Token adapter.

Creates the token backend for the requested mode and exposes the
capability the signing coordinator needs: select a backend, read the
certificate, sign a hash.

The adapter caches one backend per mode but keeps no selection. The
backend returned by select_backend, the certificate and the hash all
belong to the session that asked for them.
"""

import logging
from typing import Optional, Union

from idsign.config import Settings, get_settings
from idsign.models import Certificate, HashToSign, Signature, TokenOptions
from idsign.token.base import (
    BackendMode,
    BackendUnavailableError,
    PinPrompt,
    TokenBackend,
    TokenCapability,
)

logger = logging.getLogger(__name__)


def resolve_backend_mode(mode: Union[BackendMode, str], settings: Settings) -> Optional[BackendMode]:
    """Determine which backend a mode selects.

    Priority for AUTO:
    1. PKCS11_LIB present -> PKCS#11
    2. SOFTWARE_TOKEN_KEY present -> software
    3. Nothing configured -> None

    Returns:
        Concrete BackendMode, or None if nothing usable is configured
    """
    try:
        mode = BackendMode(str(getattr(mode, "value", mode)).lower())
    except ValueError:
        logger.error(f"Unknown token backend mode: {mode}")
        return None

    if mode != BackendMode.AUTO:
        return mode

    if settings.has_pkcs11:
        return BackendMode.PKCS11
    if settings.has_software_token:
        return BackendMode.SOFTWARE
    return None


class TokenAdapter(TokenCapability):
    """Token capability backed by a configured TokenBackend."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pin_prompt: Optional[PinPrompt] = None,
    ):
        self.settings = settings or get_settings()
        self.pin_prompt = pin_prompt
        self._backends: dict[BackendMode, TokenBackend] = {}

    def _create_backend(self, mode: BackendMode) -> Optional[TokenBackend]:
        if mode == BackendMode.PKCS11:
            if not self.settings.has_pkcs11:
                logger.warning("PKCS#11 backend requested but PKCS11_LIB is not set")
                return None
            from idsign.token.pkcs11 import PKCS11Token
            return PKCS11Token(
                self.settings.pkcs11_lib,
                token_label=self.settings.pkcs11_token_label,
                slot=self.settings.pkcs11_slot,
                pin_prompt=self.pin_prompt,
            )

        if mode == BackendMode.SOFTWARE:
            if not self.settings.has_software_token:
                logger.warning("Software backend requested but SOFTWARE_TOKEN_KEY is not set")
                return None
            from idsign.token.software import SoftwareToken
            return SoftwareToken.from_files(
                self.settings.software_token_key,
                self.settings.software_token_cert,
                self.settings.software_token_password,
            )

        return None

    def register_backend(self, backend: TokenBackend):
        """Use a pre-built backend for its mode (e.g. an in-memory software token)."""
        self._backends[backend.mode] = backend

    async def select_backend(self, mode: Union[BackendMode, str]) -> Optional[TokenBackend]:
        """Select and health-check the backend for mode.

        Returns:
            The ready backend for the caller to keep, or None
        """
        resolved = resolve_backend_mode(mode, self.settings)
        if resolved is None:
            logger.warning(f"No token backend available for mode {mode}")
            return None

        backend = self._backends.get(resolved)
        if backend is None:
            try:
                backend = self._create_backend(resolved)
            except Exception as e:
                logger.error(f"Failed to initialize {resolved.value} token backend: {e}")
                return None
            if backend is None:
                return None
            self._backends[resolved] = backend

        if not await backend.health_check():
            logger.warning(f"{backend!r} failed health check")
            return None

        logger.info(f"Selected token backend {backend!r}")
        return backend

    def _require_backend(self, backend: Optional[TokenBackend]) -> TokenBackend:
        if backend is None or all(backend is not known for known in self._backends.values()):
            raise BackendUnavailableError(f"{backend!r} was not selected through this adapter")
        return backend

    async def fetch_certificate(self, backend: TokenBackend, options: TokenOptions) -> Certificate:
        return await self._require_backend(backend).get_certificate(options)

    async def sign(
        self,
        backend: TokenBackend,
        certificate: Certificate,
        hash_to_sign: HashToSign,
        options: TokenOptions,
    ) -> Signature:
        value = await self._require_backend(backend).sign(certificate, hash_to_sign, options)
        return Signature(value=value, signed_hash=hash_to_sign)

"""PKCS#11 token backend for ID cards.

Talks to the card through the reader middleware's PKCS#11 module, e.g.:
- OpenSC (opensc-pkcs11.so), which exposes Estonian ID cards as two tokens,
  "... (PIN1)" for authentication and "... (PIN2)" for signing
- Vendor middleware for other national eID cards

Setup:
1. Install the middleware for your card
2. Set PKCS11_LIB to the module path
3. Optionally set PKCS11_TOKEN_LABEL (e.g. "PIN2") or PKCS11_SLOT
"""

import asyncio
import logging
from typing import Optional

from idsign.algorithms import KEY_TYPE_EC, KEY_TYPE_RSA, digest_info
from idsign.models import Certificate, HashToSign, TokenOptions
from idsign.token.base import (
    BackendMode,
    DeclineReason,
    PinPrompt,
    TokenBackend,
    TokenDeclinedError,
)

logger = logging.getLogger(__name__)


class PKCS11Token(TokenBackend):
    """Smart card backend over PKCS#11.

    Certificates are read without logging in. Signing logs in with the
    signing PIN, which comes from pin_prompt or, when no prompt is given,
    from the reader's PIN pad / middleware dialog.
    """

    def __init__(
        self,
        pkcs11_lib: Optional[str],
        token_label: Optional[str] = None,
        slot: Optional[int] = None,
        pin_prompt: Optional[PinPrompt] = None,
    ):
        """Initialize PKCS#11 token backend.

        Args:
            pkcs11_lib: Path to PKCS#11 module
            token_label: Substring the token label must contain
            slot: Fixed slot id (overrides label matching)
            pin_prompt: Coroutine asking the user for the signing PIN
        """
        super().__init__(BackendMode.PKCS11)
        self.pkcs11_lib = pkcs11_lib
        self.token_label = token_label
        self.slot = slot
        self.pin_prompt = pin_prompt
        self._lib = None

    def _get_pkcs11_lib(self):
        """Load the PKCS#11 module once."""
        if self._lib is not None:
            return self._lib

        import pkcs11

        if not self.pkcs11_lib:
            raise RuntimeError("PKCS11_LIB is not set")

        self._lib = pkcs11.lib(self.pkcs11_lib)
        return self._lib

    def _find_token(self):
        """Find the token holding the signing key.

        Raises:
            TokenDeclinedError: No card in any reader
        """
        lib = self._get_pkcs11_lib()

        for slot in lib.get_slots(token_present=True):
            if self.slot is not None and slot.slot_id != self.slot:
                continue
            token = slot.get_token()
            if self.token_label and self.token_label not in token.label:
                continue
            return token

        raise TokenDeclinedError(DeclineReason.NO_CARD, "No matching token present")

    def _read_certificate(self) -> Certificate:
        """Read the signing certificate (blocking)."""
        from pkcs11 import Attribute, ObjectClass

        token = self._find_token()
        candidates: list[Certificate] = []

        with token.open() as session:
            for obj in session.get_objects({Attribute.CLASS: ObjectClass.CERTIFICATE}):
                candidates.append(
                    Certificate(der=bytes(obj[Attribute.VALUE]), key_ref=bytes(obj[Attribute.ID]))
                )

        if not candidates:
            raise TokenDeclinedError(DeclineReason.NO_CERTIFICATE, f"No certificate on token {token.label!r}")

        for certificate in candidates:
            if certificate.has_non_repudiation:
                return certificate
        return candidates[0]

    def _sign_blocking(self, certificate: Certificate, hash_to_sign: HashToSign, pin) -> bytes:
        """Log in and sign (blocking)."""
        from pkcs11 import KeyType, Mechanism, ObjectClass

        token = self._find_token()

        with token.open(user_pin=pin) as session:
            key = session.get_key(object_class=ObjectClass.PRIVATE_KEY, id=certificate.key_ref)

            if key.key_type == KeyType.RSA:
                key_type = KEY_TYPE_RSA
                data = digest_info(hash_to_sign.hash_name, hash_to_sign.digest)
                mechanism = Mechanism.RSA_PKCS
            elif key.key_type == KeyType.EC:
                key_type = KEY_TYPE_EC
                data = hash_to_sign.digest
                mechanism = Mechanism.ECDSA
            else:
                raise TokenDeclinedError(DeclineReason.TOKEN_ERROR, f"Unsupported key type {key.key_type}")

            if not hash_to_sign.algorithm.matches_key_type(key_type):
                raise TokenDeclinedError(
                    DeclineReason.TOKEN_ERROR,
                    f"{hash_to_sign.algorithm.identifier} cannot be used with a {key_type} key",
                )

            return bytes(key.sign(data, mechanism=mechanism))

    @staticmethod
    def _translate(error: Exception) -> TokenDeclinedError:
        """Map PKCS#11 exceptions to decline reasons."""
        from pkcs11 import exceptions

        if isinstance(error, TokenDeclinedError):
            return error
        if isinstance(error, (exceptions.PinIncorrect, exceptions.PinLenRange)):
            return TokenDeclinedError(DeclineReason.WRONG_PIN, str(error) or "PIN incorrect")
        if isinstance(error, exceptions.PinLocked):
            return TokenDeclinedError(DeclineReason.PIN_LOCKED, str(error) or "PIN locked")
        if isinstance(error, (exceptions.TokenNotPresent, exceptions.NoSuchToken)):
            return TokenDeclinedError(DeclineReason.NO_CARD, str(error) or "Token removed")
        if isinstance(error, exceptions.NoSuchKey):
            return TokenDeclinedError(DeclineReason.NO_CERTIFICATE, "No private key for certificate")
        return TokenDeclinedError(DeclineReason.TOKEN_ERROR, f"{type(error).__name__}: {error}")

    async def get_certificate(self, options: TokenOptions) -> Certificate:
        """Read the signing certificate from the card."""
        loop = asyncio.get_running_loop()
        try:
            certificate = await loop.run_in_executor(None, self._read_certificate)
        except Exception as e:
            declined = self._translate(e)
            logger.warning(f"PKCS#11 certificate read declined: {declined.reason.value}: {declined}")
            raise declined from e

        logger.info(f"Read certificate {certificate.fingerprint[:16]} from token")
        return certificate

    async def sign(
        self,
        certificate: Certificate,
        hash_to_sign: HashToSign,
        options: TokenOptions,
    ) -> bytes:
        """Sign the digest on the card."""
        import pkcs11

        if certificate.key_ref is None:
            raise TokenDeclinedError(DeclineReason.NO_CERTIFICATE, "Certificate was not read from this token")

        if self.pin_prompt is not None:
            pin = await self.pin_prompt(options)
            if pin is None:
                raise TokenDeclinedError(DeclineReason.CANCELLED, "PIN entry cancelled")
        else:
            pin = pkcs11.PROTECTED_AUTH

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                lambda: self._sign_blocking(certificate, hash_to_sign, pin),
            )
        except Exception as e:
            declined = self._translate(e)
            logger.warning(f"PKCS#11 signing declined: {declined.reason.value}: {declined}")
            raise declined from e

    async def health_check(self) -> bool:
        """Check that the PKCS#11 module loads."""
        try:
            self._get_pkcs11_lib()
            return True
        except Exception as e:
            logger.warning(f"PKCS#11 module unavailable: {e}")
            return False

"""Software token backend.

Keeps a private key and its certificate in memory. Suitable for:
- Development against a test signing service
- Automated tests

WARNING: the key is an ordinary file. Qualified signatures require a
card or Mobile-ID.
"""

import logging
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa, utils
from cryptography.hazmat.primitives.serialization import pkcs12

from idsign.algorithms import KEY_TYPE_EC, KEY_TYPE_RSA
from idsign.models import Certificate, HashToSign, TokenOptions
from idsign.token.base import (
    BackendMode,
    DeclineReason,
    TokenBackend,
    TokenDeclinedError,
)

logger = logging.getLogger(__name__)

_HASHES = {
    "SHA-224": hashes.SHA224,
    "SHA-256": hashes.SHA256,
    "SHA-384": hashes.SHA384,
    "SHA-512": hashes.SHA512,
}


class SoftwareToken(TokenBackend):
    """Token backed by an in-memory private key."""

    def __init__(self, private_key, certificate: Certificate):
        super().__init__(BackendMode.SOFTWARE)
        if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise ValueError("Software token supports RSA and EC keys only")
        self._private_key = private_key
        self.certificate = certificate

    @classmethod
    def from_files(
        cls,
        key_path: str,
        cert_path: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "SoftwareToken":
        """Load a software token.

        Args:
            key_path: PKCS#12 bundle (.p12/.pfx) or PEM private key
            cert_path: PEM certificate, required with a PEM key
            password: Key file password

        Returns:
            SoftwareToken
        """
        secret = password.encode("utf-8") if password else None
        key_data = Path(key_path).read_bytes()

        if key_path.lower().endswith((".p12", ".pfx")):
            private_key, cert, _ = pkcs12.load_key_and_certificates(key_data, secret)
            if private_key is None or cert is None:
                raise ValueError(f"{key_path} does not contain a key and certificate")
            der = cert.public_bytes(serialization.Encoding.DER)
            return cls(private_key, Certificate(der=der))

        if not cert_path:
            raise ValueError("A PEM private key needs SOFTWARE_TOKEN_CERT")

        private_key = serialization.load_pem_private_key(key_data, password=secret)
        cert = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
        der = cert.public_bytes(serialization.Encoding.DER)
        return cls(private_key, Certificate(der=der))

    @property
    def key_type(self) -> str:
        if isinstance(self._private_key, rsa.RSAPrivateKey):
            return KEY_TYPE_RSA
        return KEY_TYPE_EC

    async def get_certificate(self, options: TokenOptions) -> Certificate:
        return self.certificate

    async def sign(
        self,
        certificate: Certificate,
        hash_to_sign: HashToSign,
        options: TokenOptions,
    ) -> bytes:
        """Sign the prehashed digest with the in-memory key."""
        if certificate != self.certificate:
            raise TokenDeclinedError(DeclineReason.NO_CERTIFICATE, "Certificate does not belong to this token")

        if not hash_to_sign.algorithm.matches_key_type(self.key_type):
            raise TokenDeclinedError(
                DeclineReason.TOKEN_ERROR,
                f"{hash_to_sign.algorithm.identifier} cannot be used with a {self.key_type} key",
            )

        prehashed = utils.Prehashed(_HASHES[hash_to_sign.hash_name]())

        try:
            if isinstance(self._private_key, rsa.RSAPrivateKey):
                return self._private_key.sign(hash_to_sign.digest, padding.PKCS1v15(), prehashed)

            # Cards return ECDSA signatures as raw r || s
            der_signature = self._private_key.sign(hash_to_sign.digest, ec.ECDSA(prehashed))
            r, s = utils.decode_dss_signature(der_signature)
            size = (self._private_key.curve.key_size + 7) // 8
            return r.to_bytes(size, "big") + s.to_bytes(size, "big")

        except ValueError as e:
            # Digest length does not match the hash algorithm
            logger.error(f"Software signing failed: {e}")
            raise TokenDeclinedError(DeclineReason.TOKEN_ERROR, str(e)) from e

"""Data carried through a signing session.

SigningRequest:  what the user asked to sign, and with what
Certificate:     signer certificate read from the token
HashToSign:      digest + algorithm returned by the service in phase 1
Signature:       token output over exactly one HashToSign
"""

import base64
import binascii
import hashlib
import re
import ssl
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from idsign.algorithms import KEY_TYPE_EC, KEY_TYPE_RSA, SignatureAlgorithm, parse_algorithm

_PERSONAL_CODE = re.compile(r"^\d{11}$")
_PHONE_NUMBER = re.compile(r"^\+?\d{7,15}$")


@dataclass(frozen=True)
class LocalToken:
    """Sign with the local token (ID card through reader middleware)."""


@dataclass(frozen=True)
class MobileID:
    """Sign with Mobile-ID.

    Attributes:
        personal_code: Signer's personal identification code
        phone_number: Phone number registered for Mobile-ID
    """
    personal_code: str
    phone_number: str

    def __post_init__(self):
        if not _PERSONAL_CODE.match(self.personal_code):
            raise ValueError("Personal code must be 11 digits")
        if not _PHONE_NUMBER.match(self.phone_number):
            raise ValueError("Phone number must be digits with an optional leading +")


SignerIdentity = Union[LocalToken, MobileID]


@dataclass(frozen=True)
class SigningRequest:
    """A user's request to sign a text document."""
    document: str
    signer: SignerIdentity = field(default_factory=LocalToken)

    def __post_init__(self):
        if not self.document:
            raise ValueError("Cannot sign an empty document")

    @property
    def uses_mobile_id(self) -> bool:
        return isinstance(self.signer, MobileID)


@dataclass(frozen=True)
class TokenOptions:
    """Options passed through to the token; lang only picks the UI language."""
    lang: str = "et"


@dataclass(frozen=True)
class Certificate:
    """Signer certificate, opaque apart from forwarding and key type.

    Attributes:
        der: DER encoding of the certificate
        key_ref: Backend handle of the matching private key (e.g. PKCS#11 CKA_ID)
    """
    der: bytes
    key_ref: Optional[bytes] = field(default=None, compare=False)

    @classmethod
    def from_hex(cls, value: str, key_ref: Optional[bytes] = None) -> "Certificate":
        return cls(der=bytes.fromhex(value), key_ref=key_ref)

    @classmethod
    def from_pem(cls, value: str, key_ref: Optional[bytes] = None) -> "Certificate":
        return cls(der=ssl.PEM_cert_to_DER_cert(value), key_ref=key_ref)

    def to_pem(self) -> str:
        return ssl.DER_cert_to_PEM_cert(self.der)

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint, safe to log."""
        return hashlib.sha256(self.der).hexdigest()

    def _parsed(self) -> Optional[x509.Certificate]:
        try:
            return x509.load_der_x509_certificate(self.der)
        except ValueError:
            return None

    @property
    def key_type(self) -> Optional[str]:
        """Public key type ("RSA" or "EC"), None if the DER cannot be parsed."""
        parsed = self._parsed()
        if parsed is None:
            return None
        public_key = parsed.public_key()
        if isinstance(public_key, rsa.RSAPublicKey):
            return KEY_TYPE_RSA
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            return KEY_TYPE_EC
        return None

    @property
    def has_non_repudiation(self) -> bool:
        """True if key usage marks this as a qualified signing certificate."""
        parsed = self._parsed()
        if parsed is None:
            return False
        try:
            usage = parsed.extensions.get_extension_for_class(x509.KeyUsage).value
        except x509.ExtensionNotFound:
            return False
        return usage.content_commitment


@dataclass(frozen=True)
class HashToSign:
    """Digest and algorithm the service asks the token to sign."""
    digest: bytes
    algorithm: SignatureAlgorithm

    @classmethod
    def from_wire(cls, hash_b64: str, algo: str) -> "HashToSign":
        """Validate a phase-1 response.

        Args:
            hash_b64: Base64-encoded digest
            algo: Algorithm identifier

        Returns:
            HashToSign

        Raises:
            ValueError: Digest is empty or not base64, or algorithm unknown
        """
        try:
            digest = base64.b64decode(hash_b64, validate=True)
        except binascii.Error as e:
            raise ValueError(f"hash is not valid base64: {e}")
        if not digest:
            raise ValueError("hash is empty")
        algorithm = parse_algorithm(algo)
        if algorithm is None:
            raise ValueError(f"unrecognized algorithm: {algo!r}")
        return cls(digest=digest, algorithm=algorithm)

    @property
    def hash_name(self) -> str:
        return self.algorithm.hash_name


@dataclass(frozen=True)
class Signature:
    """Raw signature bytes and the hash they were produced over."""
    value: bytes
    signed_hash: HashToSign

    def encoded(self) -> str:
        """Standard base64, as sent to phase 2."""
        return base64.b64encode(self.value).decode("ascii")

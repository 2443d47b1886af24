"""Signature algorithm identifiers accepted from the signing service.

The service names either a bare hash (token middleware style, "SHA-256")
or a key-qualified algorithm ("RSA-SHA256", "ECDSA-SHA384"). Key-qualified
names must agree with the key type of the signer's certificate.
"""

from dataclasses import dataclass
from typing import Optional

KEY_TYPE_RSA = "RSA"
KEY_TYPE_EC = "EC"

# DER-encoded DigestInfo prefixes for PKCS#1 v1.5 (RFC 8017, section 9.2)
DIGEST_INFO_PREFIXES: dict[str, bytes] = {
    "SHA-224": bytes.fromhex("302d300d06096086480165030402040500041c"),
    "SHA-256": bytes.fromhex("3031300d060960864801650304020105000420"),
    "SHA-384": bytes.fromhex("3041300d060960864801650304020205000430"),
    "SHA-512": bytes.fromhex("3051300d060960864801650304020305000440"),
}


@dataclass(frozen=True)
class SignatureAlgorithm:
    """A recognized algorithm identifier.

    Attributes:
        identifier: Identifier as sent by the service
        hash_name: Hash function, in "SHA-256" form
        key_type: Required key type, or None when any key may be used
    """
    identifier: str
    hash_name: str
    key_type: Optional[str] = None

    def matches_key_type(self, key_type: Optional[str]) -> bool:
        """Check the algorithm against a certificate's key type.

        An unknown certificate key type, or a hash-only algorithm, always
        matches.
        """
        if self.key_type is None or key_type is None:
            return True
        return self.key_type == key_type


def _build_table() -> dict[str, SignatureAlgorithm]:
    table: dict[str, SignatureAlgorithm] = {}
    for hash_name in DIGEST_INFO_PREFIXES:
        table[hash_name] = SignatureAlgorithm(hash_name, hash_name)
        compact = hash_name.replace("-", "")
        for prefix, key_type in (("RSA", KEY_TYPE_RSA), ("ECDSA", KEY_TYPE_EC)):
            identifier = f"{prefix}-{compact}"
            table[identifier] = SignatureAlgorithm(identifier, hash_name, key_type)
    return table


ALGORITHMS = _build_table()


def parse_algorithm(identifier: Optional[str]) -> Optional[SignatureAlgorithm]:
    """Look up an algorithm identifier.

    Args:
        identifier: Identifier from the phase-1 response

    Returns:
        SignatureAlgorithm, or None if the identifier is not recognized
    """
    if not identifier:
        return None
    return ALGORITHMS.get(identifier.strip().upper())


def digest_info(hash_name: str, digest: bytes) -> bytes:
    """Wrap a digest in its DER DigestInfo for raw PKCS#1 v1.5 signing."""
    try:
        return DIGEST_INFO_PREFIXES[hash_name] + digest
    except KeyError:
        raise ValueError(f"No DigestInfo prefix for {hash_name}")

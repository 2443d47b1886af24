"""Pytest configuration and fixtures."""

import asyncio
import datetime
import json
from typing import Callable, Optional

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from idsign.config import Settings
from idsign.models import Certificate, HashToSign, Signature, TokenOptions
from idsign.service.client import SigningServiceClient
from idsign.token.base import BackendMode, DeclineReason, TokenCapability, TokenDeclinedError

SERVICE_URL = "https://signing.test"


def make_certificate(private_key, signing: bool = True) -> Certificate:
    """Self-signed test certificate for private_key."""
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "EE"),
        x509.NameAttribute(NameOID.COMMON_NAME, "TESTNUMBER,SEITSMES,51001091072"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .add_extension(
            x509.KeyUsage(
                digital_signature=not signing,
                content_commitment=signing,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(private_key, hashes.SHA256())
    )
    return Certificate(der=cert.public_bytes(serialization.Encoding.DER))


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def rsa_certificate(rsa_key) -> Certificate:
    return make_certificate(rsa_key)


@pytest.fixture(scope="session")
def ec_certificate(ec_key) -> Certificate:
    return make_certificate(ec_key)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None, signing_service_url=SERVICE_URL, ui_language="en")


class FakeToken(TokenCapability):
    """Scriptable token capability that records every call."""

    def __init__(
        self,
        certificate: Optional[Certificate] = None,
        available: bool = True,
        certificate_declined: Optional[DeclineReason] = None,
        sign_declined: Optional[DeclineReason] = None,
        signature_value: bytes = bytes([0x01, 0x02, 0x03]),
    ):
        self.certificate = certificate
        self.available = available
        self.certificate_declined = certificate_declined
        self.sign_declined = sign_declined
        self.signature_value = signature_value
        self.calls: list[str] = []
        self.signed: list[HashToSign] = []
        # Handle returned by select_backend
        self.handle = object()
        self.handles_used: list = []
        # Set a gate to block that call until released
        self.select_gate: Optional[asyncio.Event] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.sign_gate: Optional[asyncio.Event] = None
        self.select_started = asyncio.Event()
        self.fetch_started = asyncio.Event()
        self.sign_started = asyncio.Event()

    async def select_backend(self, mode: BackendMode):
        self.calls.append("select_backend")
        self.select_started.set()
        if self.select_gate is not None:
            await self.select_gate.wait()
        return self.handle if self.available else None

    async def fetch_certificate(self, backend, options: TokenOptions) -> Certificate:
        self.calls.append("fetch_certificate")
        self.handles_used.append(backend)
        self.fetch_started.set()
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.certificate_declined is not None:
            raise TokenDeclinedError(self.certificate_declined)
        return self.certificate

    async def sign(self, backend, certificate: Certificate, hash_to_sign: HashToSign, options: TokenOptions) -> Signature:
        self.calls.append("sign")
        self.handles_used.append(backend)
        self.sign_started.set()
        if self.sign_gate is not None:
            await self.sign_gate.wait()
        if self.sign_declined is not None:
            raise TokenDeclinedError(self.sign_declined)
        self.signed.append(hash_to_sign)
        return Signature(value=self.signature_value, signed_hash=hash_to_sign)


class FakeService:
    """Records requests and answers through an httpx.MockTransport."""

    def __init__(self, responses: Optional[dict[str, Callable]] = None):
        self.responses = responses or {}
        self.requests: list[tuple[str, dict]] = []

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    def body(self, path: str) -> dict:
        for request_path, body in self.requests:
            if request_path == path:
                return body
        raise KeyError(path)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((path, body))
        responder = self.responses.get(path)
        if responder is None:
            return httpx.Response(404, json={"message": "not found"})
        result = responder(request, body)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    def client(self) -> SigningServiceClient:
        return SigningServiceClient(SERVICE_URL, transport=httpx.MockTransport(self.handler))


def json_response(payload, status: int = 200) -> Callable:
    return lambda request, body: httpx.Response(status, json=payload)


@pytest.fixture
def fake_service() -> Callable[..., FakeService]:
    return FakeService

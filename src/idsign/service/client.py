"""Remote signing service client.

Three request/response exchanges:
- POST /p1   document + certificate -> hash and algorithm to sign
- POST /p2   signature -> {error}
- POST /mid  personal code + phone + document -> {error}

Each call is issued once. A response is either fully parsed or raised as
ServiceTransportError / ServiceProtocolError.
"""

import logging
from typing import Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from idsign.config import Settings, get_settings
from idsign.models import Certificate, HashToSign, Signature
from idsign.service.contracts import (
    MobileIDRequest,
    Phase1Request,
    Phase1Response,
    Phase2Request,
    SigningResult,
)

logger = logging.getLogger(__name__)

PHASE1_PATH = "/p1"
PHASE2_PATH = "/p2"
MOBILE_ID_PATH = "/mid"

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class SigningServiceClient:
    """Client for the signing service's /p1, /p2 and /mid endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 25.0,
        verify: bool | str = True,
        cert: Optional[tuple[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize signing service client.

        Args:
            base_url: Service base URL
            timeout: Transport timeout in seconds
            verify: True, or path to a CA bundle
            cert: TLS client certificate and key paths
            transport: Optional transport override
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify = verify
        self.cert = cert
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SigningServiceClient":
        settings = settings or get_settings()
        return cls(
            base_url=settings.signing_service_url,
            timeout=settings.http_timeout,
            verify=settings.ca_bundle or True,
            cert=settings.client_certificate,
        )

    def _client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify,
            cert=self.cert,
        )

    async def _post(self, path: str, payload: BaseModel, response_model: type[ResponseT]) -> ResponseT:
        """POST a JSON body and parse the JSON response.

        Raises:
            ServiceTransportError: Network failure, non-2xx, body not JSON
            ServiceProtocolError: JSON that does not match response_model
        """
        body = payload.model_dump(exclude_none=True)

        try:
            async with self._client() as client:
                response = await client.post(path, json=body)
        except httpx.HTTPError as e:
            raise ServiceTransportError(path, f"request failed: {e}") from e

        if not response.is_success:
            raise ServiceTransportError(path, f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceTransportError(path, f"response is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise ServiceProtocolError(path, f"expected a JSON object, got {type(data).__name__}")

        try:
            return response_model.model_validate(data)
        except ValidationError as e:
            raise ServiceProtocolError(path, f"malformed response: {e.errors()}") from e

    async def submit_phase1(self, document: str, certificate: Optional[Certificate]) -> HashToSign:
        """Send document and certificate; receive the hash to sign.

        Args:
            document: Document text
            certificate: Signer certificate; None omits "sert" entirely

        Returns:
            Validated HashToSign
        """
        request = Phase1Request(
            tekst=document,
            sert=certificate.to_pem() if certificate is not None else None,
        )
        response = await self._post(PHASE1_PATH, request, Phase1Response)

        try:
            hash_to_sign = HashToSign.from_wire(response.hash, response.algo)
        except ValueError as e:
            raise ServiceProtocolError(PHASE1_PATH, str(e)) from e

        logger.debug(
            f"Phase 1 returned {len(hash_to_sign.digest)}-byte digest, algorithm {hash_to_sign.algorithm.identifier}"
        )
        return hash_to_sign

    async def submit_phase2(self, signature: Signature) -> SigningResult:
        """Send the token's signature; receive the completion result."""
        request = Phase2Request(allkiri=signature.encoded())
        return await self._post(PHASE2_PATH, request, SigningResult)

    async def submit_mobile_id(self, personal_code: str, phone_number: str, document: str) -> SigningResult:
        """Start Mobile-ID signing; the service answers when signing completes."""
        request = MobileIDRequest(isikukood=personal_code, nr=phone_number, tekst=document)
        return await self._post(MOBILE_ID_PATH, request, SigningResult)


class SigningServiceError(Exception):
    """Exception raised when a signing service exchange fails."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class ServiceTransportError(SigningServiceError):
    """Network failure, non-2xx status or a body that is not JSON."""

    def __init__(self, path: str, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(path, message)


class ServiceProtocolError(SigningServiceError):
    """Well-formed JSON missing or misusing required fields."""
    pass

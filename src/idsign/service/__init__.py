"""Remote signing service client and wire contracts."""

from idsign.service.client import (
    ServiceProtocolError,
    ServiceTransportError,
    SigningServiceClient,
    SigningServiceError,
)
from idsign.service.contracts import SigningResult

__all__ = [
    "ServiceProtocolError",
    "ServiceTransportError",
    "SigningResult",
    "SigningServiceClient",
    "SigningServiceError",
]

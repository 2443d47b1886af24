"""idsign: client-side coordination of ID-card and Mobile-ID remote signing."""

from idsign.coordinator import (
    Failed,
    FailureReason,
    SigningCoordinator,
    SigningSession,
    Succeeded,
)
from idsign.models import (
    Certificate,
    HashToSign,
    LocalToken,
    MobileID,
    Signature,
    SigningRequest,
    TokenOptions,
)
from idsign.presentation import ConsolePresenter, Presenter
from idsign.service import SigningServiceClient
from idsign.token import BackendMode, TokenAdapter, TokenCapability, TokenDeclinedError

__all__ = [
    "BackendMode",
    "Certificate",
    "ConsolePresenter",
    "Failed",
    "FailureReason",
    "HashToSign",
    "LocalToken",
    "MobileID",
    "Presenter",
    "Signature",
    "SigningCoordinator",
    "SigningRequest",
    "SigningServiceClient",
    "SigningSession",
    "Succeeded",
    "TokenAdapter",
    "TokenCapability",
    "TokenDeclinedError",
    "TokenOptions",
]

__version__ = "0.1.0"

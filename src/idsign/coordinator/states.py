"""Signing session states.

Each state carries only the data that is valid in it, so a step cannot
run without the output of the step before it.

ID card:   Idle -> BackendSelecting -> CertificateFetching -> Phase1Submitting
           -> Signing -> Phase2Submitting -> Succeeded | Failed
Mobile-ID: Idle -> MobileIDSubmitting -> Succeeded | Failed
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from idsign.models import Certificate, HashToSign, Signature


class FailureReason(str, Enum):
    """Terminal failure categories."""
    BACKEND_UNAVAILABLE = "backend_unavailable"
    CERTIFICATE_UNAVAILABLE = "certificate_unavailable"
    PHASE1_TRANSPORT_ERROR = "phase1_transport_error"
    PHASE1_PROTOCOL_ERROR = "phase1_protocol_error"
    SIGNATURE_DECLINED = "signature_declined"
    PHASE2_TRANSPORT_ERROR = "phase2_transport_error"
    SERVER_REJECTED = "server_rejected"
    USER_CANCELLED = "user_cancelled"


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class BackendSelecting:
    pass


@dataclass(frozen=True)
class CertificateFetching:
    pass


@dataclass(frozen=True)
class Phase1Submitting:
    certificate: Certificate


@dataclass(frozen=True)
class Signing:
    certificate: Certificate
    hash_to_sign: HashToSign


@dataclass(frozen=True)
class Phase2Submitting:
    signature: Signature


@dataclass(frozen=True)
class MobileIDSubmitting:
    pass


@dataclass(frozen=True)
class Succeeded:
    """Signing completed.

    Attributes:
        mobile_id: Completed through Mobile-ID rather than the local token
        signed_file: Container name reported by the service, if any
    """
    mobile_id: bool = False
    signed_file: Optional[str] = None


@dataclass(frozen=True)
class Failed:
    """Signing failed.

    Attributes:
        reason: Failure category
        detail: Server-supplied message (ServerRejected only)
    """
    reason: FailureReason
    detail: Optional[str] = None


State = Union[
    Idle,
    BackendSelecting,
    CertificateFetching,
    Phase1Submitting,
    Signing,
    Phase2Submitting,
    MobileIDSubmitting,
    Succeeded,
    Failed,
]

TerminalState = Union[Succeeded, Failed]


def is_terminal(state: State) -> bool:
    return isinstance(state, (Succeeded, Failed))

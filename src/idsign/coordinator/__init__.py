"""Signing coordinator: session state machine and its driver."""

from idsign.coordinator.coordinator import SigningCoordinator
from idsign.coordinator.messages import outcome_message
from idsign.coordinator.session import SigningSession
from idsign.coordinator.states import (
    BackendSelecting,
    CertificateFetching,
    Failed,
    FailureReason,
    Idle,
    MobileIDSubmitting,
    Phase1Submitting,
    Phase2Submitting,
    Signing,
    State,
    Succeeded,
    TerminalState,
    is_terminal,
)

__all__ = [
    "BackendSelecting",
    "CertificateFetching",
    "Failed",
    "FailureReason",
    "Idle",
    "MobileIDSubmitting",
    "Phase1Submitting",
    "Phase2Submitting",
    "Signing",
    "SigningCoordinator",
    "SigningSession",
    "State",
    "Succeeded",
    "TerminalState",
    "is_terminal",
    "outcome_message",
]

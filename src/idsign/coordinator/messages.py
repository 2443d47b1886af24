"""User-visible outcome messages.

Only these strings (and a ServerRejected detail, verbatim) are shown to the
user. Technical causes go to the log.
"""

from idsign.coordinator.states import Failed, FailureReason, Succeeded, TerminalState

DEFAULT_LANGUAGE = "et"

SIGNED = "signed"
SIGNED_MOBILE_ID = "signed_mobile_id"
REQUEST_FAILED = "request_failed"

MESSAGES: dict[str, dict[str, str]] = {
    "et": {
        SIGNED: "Allkiri edukalt antud",
        SIGNED_MOBILE_ID: "Allkirjastamine edukas",
        FailureReason.BACKEND_UNAVAILABLE.value: "ID-kaardi tarkvara ei ole kättesaadav",
        FailureReason.CERTIFICATE_UNAVAILABLE.value: (
            "Serdi lugemine ebaõnnestus. Kontrolli, kas ID-kaart on lugejas."
        ),
        REQUEST_FAILED: "Päring ebaõnnestus",
        FailureReason.SIGNATURE_DECLINED.value: "Allkirjastamine ebaõnnestus",
        FailureReason.USER_CANCELLED.value: "Allkirjastamine katkestati",
    },
    "en": {
        SIGNED: "Document signed successfully",
        SIGNED_MOBILE_ID: "Signing successful",
        FailureReason.BACKEND_UNAVAILABLE.value: "ID card software is not available",
        FailureReason.CERTIFICATE_UNAVAILABLE.value: (
            "Reading the certificate failed. Check that the ID card is in the reader."
        ),
        REQUEST_FAILED: "Request failed",
        FailureReason.SIGNATURE_DECLINED.value: "Signing failed",
        FailureReason.USER_CANCELLED.value: "Signing was cancelled",
    },
}

_REQUEST_FAILURES = (
    FailureReason.PHASE1_TRANSPORT_ERROR,
    FailureReason.PHASE1_PROTOCOL_ERROR,
    FailureReason.PHASE2_TRANSPORT_ERROR,
)


def outcome_message(state: TerminalState, lang: str = DEFAULT_LANGUAGE) -> str:
    """Message to show for a terminal state.

    Args:
        state: Succeeded or Failed
        lang: Two-letter language code; unknown codes fall back to Estonian

    Returns:
        Human-readable message
    """
    table = MESSAGES.get(lang, MESSAGES[DEFAULT_LANGUAGE])

    if isinstance(state, Succeeded):
        return table[SIGNED_MOBILE_ID if state.mobile_id else SIGNED]

    if isinstance(state, Failed):
        if state.reason == FailureReason.SERVER_REJECTED:
            return state.detail or table[REQUEST_FAILED]
        if state.reason in _REQUEST_FAILURES:
            return table[REQUEST_FAILED]
        return table[state.reason.value]

    raise ValueError(f"Not a terminal state: {state!r}")

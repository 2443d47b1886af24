"""Signing coordinator.

Opens a fresh session per user action, drives it to a terminal state and
reports the outcome to the presentation layer.
"""

import logging
from typing import Optional, Union

from idsign.config import Settings, get_settings
from idsign.coordinator.messages import outcome_message
from idsign.coordinator.session import SigningSession
from idsign.coordinator.states import Succeeded, TerminalState
from idsign.models import LocalToken, MobileID, SigningRequest, TokenOptions
from idsign.presentation import Presenter
from idsign.service.client import SigningServiceClient
from idsign.token.base import BackendMode, TokenCapability

logger = logging.getLogger(__name__)


class SigningCoordinator:
    """Entry points the presentation layer calls to sign a document."""

    def __init__(
        self,
        token: TokenCapability,
        service: SigningServiceClient,
        presenter: Optional[Presenter] = None,
        settings: Optional[Settings] = None,
        backend_mode: Union[BackendMode, str, None] = None,
    ):
        """Initialize the coordinator.

        Args:
            token: Token capability (shared; holds no session data)
            service: Remote signing service client
            presenter: Receives outcomes; None disables reporting
            settings: Settings (defaults to get_settings())
            backend_mode: Token mode, defaults to TOKEN_BACKEND
        """
        self.settings = settings or get_settings()
        self.token = token
        self.service = service
        self.presenter = presenter
        self.backend_mode = backend_mode or self.settings.token_backend
        self.language = self.settings.ui_language

    def open_session(self, request: SigningRequest) -> SigningSession:
        """Create a fresh, independent session for request."""
        session = SigningSession(
            request,
            token=self.token,
            service=self.service,
            backend_mode=self.backend_mode,
            options=TokenOptions(lang=self.language),
        )
        logger.info(
            f"Opened session {session.id} ({'Mobile-ID' if request.uses_mobile_id else 'ID card'}, "
            f"{len(request.document)} chars)"
        )
        return session

    async def run(self, session: SigningSession) -> TerminalState:
        """Run session and report its outcome."""
        state = await session.run()
        self._report(state)
        return state

    async def sign(self, request: SigningRequest) -> TerminalState:
        return await self.run(self.open_session(request))

    async def sign_document(self) -> TerminalState:
        """Sign the presenter's document with the local token."""
        return await self.sign(SigningRequest(self._document_text(), LocalToken()))

    async def sign_with_mobile_id(self, personal_code: str, phone_number: str) -> TerminalState:
        """Sign the presenter's document with Mobile-ID."""
        signer = MobileID(personal_code=personal_code, phone_number=phone_number)
        return await self.sign(SigningRequest(self._document_text(), signer))

    def _document_text(self) -> str:
        if self.presenter is None:
            raise RuntimeError("No presenter to read the document from")
        return self.presenter.get_document_text()

    def _report(self, state: TerminalState):
        if self.presenter is None:
            return
        self.presenter.report_outcome(
            isinstance(state, Succeeded),
            outcome_message(state, self.language),
        )

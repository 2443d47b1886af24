"""A single signing attempt.

A session is created per user "sign" action, runs once, and ends in
Succeeded or Failed. Every failure is terminal; a retry is a new session.
The certificate, hash and signature live only in this session's states.
"""

import asyncio
import logging
import uuid
from typing import Optional, Union

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
from idsign.models import MobileID, SigningRequest, TokenOptions
from idsign.service.client import (
    ServiceProtocolError,
    SigningServiceClient,
    SigningServiceError,
)
from idsign.token.base import BackendMode, TokenCapability, TokenDeclinedError

logger = logging.getLogger(__name__)


class SigningSession:
    """Drives one request through the signing handshake.

    Example:
        session = SigningSession(request, token, service)
        task = asyncio.create_task(session.run())
        ...
        session.cancel()   # user abandoned the attempt
        state = await task  # Failed(USER_CANCELLED)
    """

    def __init__(
        self,
        request: SigningRequest,
        token: TokenCapability,
        service: SigningServiceClient,
        backend_mode: Union[BackendMode, str] = BackendMode.AUTO,
        options: Optional[TokenOptions] = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.request = request
        self.token = token
        self.service = service
        self.backend_mode = backend_mode
        self.options = options or TokenOptions()

        self.state: State = Idle()
        self.history: list[State] = [self.state]

        self._started = False
        self._cancel_requested = False
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return is_terminal(self.state)

    def cancel(self) -> bool:
        """Abandon the session.

        Cancels a pending token or network call. The session then ends in
        Failed(USER_CANCELLED) and makes no further calls.

        Returns:
            False if the session had already finished
        """
        if self.done:
            return False
        if self._cancel_requested:
            return True

        self._cancel_requested = True
        logger.info(f"Session {self.id}: cancellation requested in {type(self.state).__name__}")

        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        return True

    def _enter(self, state: State):
        logger.debug(f"Session {self.id}: {type(self.state).__name__} -> {type(state).__name__}")
        self.state = state
        self.history.append(state)

    def _fail(
        self,
        reason: FailureReason,
        detail: Optional[str] = None,
        cause: Optional[BaseException] = None,
        unexpected: bool = False,
    ) -> Failed:
        if unexpected:
            logger.error(f"Session {self.id} failed ({reason.value}) on unexpected error: {cause!r}", exc_info=cause)
        elif cause is not None:
            logger.warning(f"Session {self.id} failed ({reason.value}): {type(cause).__name__}: {cause}")
        else:
            logger.warning(f"Session {self.id} failed ({reason.value})" + (f": {detail}" if detail else ""))

        failed = Failed(reason=reason, detail=detail)
        self._enter(failed)
        return failed

    def _succeed(self, mobile_id: bool = False, signed_file: Optional[str] = None) -> Succeeded:
        logger.info(f"Session {self.id} succeeded" + (" via Mobile-ID" if mobile_id else ""))
        succeeded = Succeeded(mobile_id=mobile_id, signed_file=signed_file)
        self._enter(succeeded)
        return succeeded

    async def run(self) -> TerminalState:
        """Run the handshake to a terminal state.

        Returns:
            Succeeded or Failed; errors never escape

        Raises:
            RuntimeError: The session has already been run
        """
        if self._started:
            raise RuntimeError(f"Session {self.id} has already run; start a new session")
        self._started = True
        self._task = asyncio.current_task()

        try:
            if self._cancel_requested:
                return self._fail(FailureReason.USER_CANCELLED)
            if isinstance(self.request.signer, MobileID):
                return await self._run_mobile_id(self.request.signer)
            return await self._run_id_card()

        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            return self._fail(FailureReason.USER_CANCELLED)

        finally:
            self._task = None

    async def _run_id_card(self) -> TerminalState:
        # 1. Backend selection
        self._enter(BackendSelecting())
        try:
            backend = await self.token.select_backend(self.backend_mode)
        except Exception as e:
            return self._fail(FailureReason.BACKEND_UNAVAILABLE, cause=e, unexpected=True)
        if self._cancel_requested:
            return self._fail(FailureReason.USER_CANCELLED)
        if backend is None:
            return self._fail(FailureReason.BACKEND_UNAVAILABLE)

        # 2. Certificate
        self._enter(CertificateFetching())
        try:
            certificate = await self.token.fetch_certificate(backend, self.options)
        except TokenDeclinedError as e:
            return self._fail(FailureReason.CERTIFICATE_UNAVAILABLE, cause=e)
        except Exception as e:
            return self._fail(FailureReason.CERTIFICATE_UNAVAILABLE, cause=e, unexpected=True)
        if self._cancel_requested:
            return self._fail(FailureReason.USER_CANCELLED)
        logger.info(f"Session {self.id}: using certificate {certificate.fingerprint[:16]}")

        # 3. Phase 1
        self._enter(Phase1Submitting(certificate=certificate))
        try:
            hash_to_sign = await self.service.submit_phase1(self.request.document, certificate)
        except ServiceProtocolError as e:
            return self._fail(FailureReason.PHASE1_PROTOCOL_ERROR, cause=e)
        except SigningServiceError as e:
            return self._fail(FailureReason.PHASE1_TRANSPORT_ERROR, cause=e)
        except Exception as e:
            return self._fail(FailureReason.PHASE1_TRANSPORT_ERROR, cause=e, unexpected=True)
        if self._cancel_requested:
            return self._fail(FailureReason.USER_CANCELLED)

        key_type = certificate.key_type
        if not hash_to_sign.algorithm.matches_key_type(key_type):
            return self._fail(
                FailureReason.PHASE1_PROTOCOL_ERROR,
                cause=ServiceProtocolError(
                    "/p1",
                    f"algorithm {hash_to_sign.algorithm.identifier} does not match {key_type} certificate",
                ),
            )

        # 4. Token signature
        self._enter(Signing(certificate=certificate, hash_to_sign=hash_to_sign))
        try:
            signature = await self.token.sign(backend, certificate, hash_to_sign, self.options)
        except TokenDeclinedError as e:
            return self._fail(FailureReason.SIGNATURE_DECLINED, cause=e)
        except Exception as e:
            return self._fail(FailureReason.SIGNATURE_DECLINED, cause=e, unexpected=True)
        if self._cancel_requested:
            return self._fail(FailureReason.USER_CANCELLED)

        if signature.signed_hash != hash_to_sign:
            logger.error(f"Session {self.id}: signature was not produced over this session's hash")
            return self._fail(FailureReason.SIGNATURE_DECLINED)

        # 5. Phase 2
        self._enter(Phase2Submitting(signature=signature))
        try:
            result = await self.service.submit_phase2(signature)
        except SigningServiceError as e:
            return self._fail(FailureReason.PHASE2_TRANSPORT_ERROR, cause=e)
        except Exception as e:
            return self._fail(FailureReason.PHASE2_TRANSPORT_ERROR, cause=e, unexpected=True)

        if not result.success:
            return self._fail(FailureReason.SERVER_REJECTED, detail=result.error)
        return self._succeed(signed_file=result.signedfile)

    async def _run_mobile_id(self, signer: MobileID) -> TerminalState:
        self._enter(MobileIDSubmitting())
        try:
            result = await self.service.submit_mobile_id(
                signer.personal_code,
                signer.phone_number,
                self.request.document,
            )
        except ServiceProtocolError as e:
            return self._fail(FailureReason.PHASE1_PROTOCOL_ERROR, cause=e)
        except SigningServiceError as e:
            return self._fail(FailureReason.PHASE1_TRANSPORT_ERROR, cause=e)
        except Exception as e:
            return self._fail(FailureReason.PHASE1_TRANSPORT_ERROR, cause=e, unexpected=True)

        if not result.success:
            return self._fail(FailureReason.SERVER_REJECTED, detail=result.error)
        return self._succeed(mobile_id=True, signed_file=result.signedfile)

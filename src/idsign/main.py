"""Command line entry point: sign a text file with an ID card or Mobile-ID."""

import argparse
import asyncio
import getpass
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from idsign.config import Settings, get_settings
from idsign.coordinator import Succeeded, SigningCoordinator
from idsign.models import LocalToken, MobileID, SigningRequest, TokenOptions
from idsign.presentation import ConsolePresenter
from idsign.service.client import SigningServiceClient
from idsign.token.adapter import TokenAdapter
from idsign.token.base import BackendMode

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


async def console_pin_prompt(options: TokenOptions) -> Optional[str]:
    """Read the signing PIN from the terminal; None if the user aborts.

    getpass blocks until Enter. It runs in a daemon thread, not the default
    executor, so a session cancelled with Ctrl-C does not hold up event loop
    shutdown.
    """
    prompt = "PIN2: " if options.lang == "et" else "Signing PIN (PIN2): "
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def deliver(result: Optional[str], error: Optional[BaseException]):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def read_pin():
        result, error = None, None
        try:
            result = getpass.getpass(prompt) or None
        except EOFError:
            pass
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(deliver, result, error)
        except RuntimeError:
            # Loop already closed after a cancelled session
            logger.debug("PIN entry finished after the signing session ended")

    threading.Thread(target=read_pin, name="pin-prompt", daemon=True).start()
    return await future


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="idsign", description="Sign text with an ID card or Mobile-ID")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sign_parser = subparsers.add_parser("sign", help="Sign a text file with the ID card")
    sign_parser.add_argument("file", help="Text file to sign")
    sign_parser.add_argument(
        "--backend",
        choices=[mode.value for mode in BackendMode],
        default=None,
        help="Token backend (default: TOKEN_BACKEND)",
    )
    sign_parser.add_argument("--lang", choices=["et", "en"], default=None)

    mid_parser = subparsers.add_parser("mid", help="Sign a text file with Mobile-ID")
    mid_parser.add_argument("file", help="Text file to sign")
    mid_parser.add_argument("--personal-code", required=True)
    mid_parser.add_argument("--phone", required=True)
    mid_parser.add_argument("--lang", choices=["et", "en"], default=None)

    subparsers.add_parser("config", help="Show effective configuration (secrets redacted)")

    return parser


def _configure_logging(settings: Settings):
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _sign(coordinator: SigningCoordinator, request: SigningRequest) -> int:
    session = coordinator.open_session(request)

    # Ctrl-C abandons the session instead of killing the process mid-call
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
    except (NotImplementedError, RuntimeError):
        pass

    try:
        state = await coordinator.run(session)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    return EXIT_OK if isinstance(state, Succeeded) else EXIT_FAILED


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    overrides = {}
    if getattr(args, "lang", None):
        overrides["ui_language"] = args.lang
    if getattr(args, "backend", None):
        overrides["token_backend"] = args.backend
    if overrides:
        settings = settings.model_copy(update=overrides)

    if args.command == "config":
        print(json.dumps(settings.get_safe_dict(), indent=2))
        return EXIT_OK

    _configure_logging(settings)

    try:
        document = Path(args.file).read_text(encoding="utf-8")
    except OSError as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        if args.command == "mid":
            request = SigningRequest(document, MobileID(args.personal_code, args.phone))
        else:
            request = SigningRequest(document, LocalToken())
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE

    coordinator = SigningCoordinator(
        token=TokenAdapter(settings, pin_prompt=console_pin_prompt),
        service=SigningServiceClient.from_settings(settings),
        presenter=ConsolePresenter(document),
        settings=settings,
    )
    return asyncio.run(_sign(coordinator, request))


if __name__ == "__main__":
    raise SystemExit(main())

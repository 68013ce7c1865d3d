#!/usr/bin/env python3
"""
Leasing platform command-line client.

Signs in, runs the account verification flows and issues authenticated
requests against the leasing API.
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys

from leaseclient.challenges import ChallengeState, ChallengeStatus, SendStatus
from leaseclient.config import load_config
from leaseclient.errors import LeaseClientError
from leaseclient.services import LoginOutcome, ServiceContext, create_services

logger = logging.getLogger(__name__)


def setup_logging(level: str, verbose: bool = False):
    """Configure logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def on_navigate(location: str):
    print(f"→ Please continue at {location}")


def report(state: ChallengeState, success_message: str) -> int:
    if state.status == ChallengeStatus.SUCCEEDED:
        print(f"✓ {success_message}")
        return 0
    print(f"✗ {state.reason or 'Failed'}")
    return 1


async def cmd_login(args, session, verification) -> int:
    email = args.email or input("Email: ").strip()
    password = getpass.getpass("Password: ")

    result = await session.login(email, password)

    if result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED:
        code = input("Two-factor code: ").strip()
        identity = await session.validate_two_factor(code)
        print(f"✓ Signed in as {identity.name} ({identity.role.value})")
        return 0

    if result.outcome == LoginOutcome.EMAIL_NOT_VERIFIED:
        print("Your email address is not verified yet.")
        return await run_email_verification(verification, result.email)

    if result.outcome == LoginOutcome.PHONE_NOT_VERIFIED:
        print("Your phone number is not verified yet.")
        return await run_phone_verification(verification, code_already_sent=result.otp_sent)

    print(f"✓ Signed in as {result.identity.name} ({result.identity.role.value})")
    return 0


async def cmd_logout(args, session, verification) -> int:
    await session.logout()
    print("✓ Signed out")
    return 0


async def cmd_whoami(args, session, verification) -> int:
    identity = session.current_identity()
    if identity is None:
        print("Not signed in")
        return 1
    print(json.dumps(identity.to_dict(), indent=2))
    return 0


async def cmd_forgot_password(args, session, verification) -> int:
    flow = verification.forgot_password(args.email or input("Email: ").strip())
    state = await flow.submit()
    return report(state, f"If {flow.target} exists in our system, a reset link is on its way.")


async def cmd_reset_password(args, session, verification) -> int:
    flow = verification.password_reset(args.url)
    if flow.state.status == ChallengeStatus.INVALID_LINK:
        print(f"✗ {flow.state.reason}")
        return 1

    while True:
        flow.set_password(getpass.getpass("New password: "))
        print(f"  Strength: {flow.strength.value}")
        flow.set_confirmation(getpass.getpass("Repeat password: "))

        state = await flow.submit()
        if state.status != ChallengeStatus.FAILED or not args.retry:
            break
        print(f"✗ {state.reason}")

    code = report(state, "Password reset successfully.")
    flow.dispose()
    return code


async def run_email_verification(verification, email: str) -> int:
    flow = verification.email_verification(email or input("Email: ").strip())
    while True:
        typed = input("6-digit code (or 'r' to resend): ").strip()
        if typed.lower() == "r":
            send_state = await flow.resend()
            if send_state.status == SendStatus.SENT:
                print("✓ New code sent! Check your inbox.")
            else:
                print(f"✗ {send_state.reason}")
            continue

        flow.enter_code(typed)
        state = await flow.verify()
        if state.status == ChallengeStatus.FAILED:
            print(f"✗ {state.reason}")
            continue
        return report(state, "Email verified. You can sign in now.")


async def run_phone_verification(verification, code_already_sent: bool = False) -> int:
    flow = verification.phone_verification(code_already_sent=code_already_sent)
    if not code_already_sent:
        state = await flow.send()
        if state.status == ChallengeStatus.FAILED:
            print(f"✗ {state.reason}")
            return 1
    print("A one-time code was sent to the phone number on your account.")

    while True:
        typed = input("OTP code (or 'r' to resend): ").strip()
        if typed.lower() == "r":
            state = await flow.send()
            if state.status == ChallengeStatus.FAILED:
                print(f"✗ {state.reason}")
            continue

        flow.enter_code(typed)
        state = await flow.verify()
        if state.status == ChallengeStatus.FAILED:
            print(f"✗ {state.reason}")
            continue
        return report(state, "Phone number verified!")


async def cmd_verify_email(args, session, verification) -> int:
    return await run_email_verification(verification, args.email)


async def cmd_verify_phone(args, session, verification) -> int:
    return await run_phone_verification(verification)


async def cmd_get(args, session, verification) -> int:
    response = await session.gateway.get(args.path)
    print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    return 0


COMMANDS = {
    "login": cmd_login,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "forgot-password": cmd_forgot_password,
    "reset-password": cmd_reset_password,
    "verify-email": cmd_verify_email,
    "verify-phone": cmd_verify_phone,
    "get": cmd_get,
}


async def run(args) -> int:
    config = load_config()
    context = ServiceContext.create(config, on_navigate=on_navigate)
    _, session, verification = create_services(context)
    try:
        return await COMMANDS[args.command](args, session, verification)
    except LeaseClientError as e:
        print(f"✗ {e}")
        return 1
    finally:
        await context.close()


def main():
    parser = argparse.ArgumentParser(
        description="Leasing platform API client"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Sign in with email and password")
    login.add_argument("--email", "-e", help="Account email")

    subparsers.add_parser("logout", help="Sign out and clear stored credentials")
    subparsers.add_parser("whoami", help="Show the signed-in identity")

    forgot = subparsers.add_parser("forgot-password", help="Request a password reset link")
    forgot.add_argument("--email", "-e", help="Account email")

    reset = subparsers.add_parser("reset-password", help="Set a new password from a reset link")
    reset.add_argument("--url", required=True, help="Reset link received by email")
    reset.add_argument("--retry", action="store_true", help="Prompt again after a rejected password")

    verify_email = subparsers.add_parser("verify-email", help="Verify an email address with a code")
    verify_email.add_argument("--email", "-e", help="Account email")

    subparsers.add_parser("verify-phone", help="Verify the account phone number with an OTP")

    get = subparsers.add_parser("get", help="Issue an authenticated GET request")
    get.add_argument("path", help="API path, e.g. /properties")

    args = parser.parse_args()

    setup_logging(load_config().logging.level, args.verbose)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())

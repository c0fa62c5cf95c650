"""CLI entry point for relaysigner."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import msgspec

from .account_manager import AccountManager
from .config import Config, add_config_arguments, config_from_args
from .keystore import KeystoreError
from .signer import SignerError
from .signing_types import relay_request_decoder

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relaysigner",
        description="relaysigner - account and signature management for relayed transactions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_config_arguments(parser)
    parser.add_argument(
        "--private-key-file",
        type=Path,
        action="append",
        default=[],
        help="File containing a hex private key to hold locally (repeatable)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("accounts", help="List locally-held account addresses")

    sign = commands.add_parser("sign", help="Sign a relay request read from a JSON file")
    sign.add_argument("request_file", type=Path, help="Relay request JSON ('-' for stdin)")
    sign.add_argument("--bls", action="store_true", help="Also produce a BLS signature")
    sign.add_argument("--bls-secret-key", default=None, help="Hex BLS secret key for --bls")

    authorize = commands.add_parser(
        "authorize", help="Create a BLS keypair and an authorization element for an account"
    )
    authorize.add_argument("address", help="Account authorizing the BLS key")
    authorize.add_argument("registrar", help="BLS registrar contract address")
    authorize.add_argument(
        "--bls-secret-key", default=None, help="Hex BLS secret key (generated when omitted)"
    )
    return parser


def _read_input(path: Path) -> bytes:
    if str(path) == "-":
        return sys.stdin.buffer.read()
    return path.read_bytes()


async def run(args: argparse.Namespace, config: Config) -> dict[str, object] | list[str]:
    manager = AccountManager.from_config(config)
    for key_file in args.private_key_file:
        manager.add_account(key_file.read_text().strip())

    if args.command == "accounts":
        return list(manager.get_accounts())

    if args.command == "sign":
        relay_request = relay_request_decoder.decode(_read_input(args.request_file))
        result: dict[str, object] = {
            "signature": await manager.sign_relay_request(relay_request),
        }
        if args.bls:
            if args.bls_secret_key is not None:
                manager.set_bls_keypair({"secretKey": args.bls_secret_key})
            else:
                manager.new_bls_keypair()
            result["blsSignature"] = msgspec.json.decode(
                await manager.sign_relay_request_bls(relay_request)
            )
        return result

    if args.bls_secret_key is not None:
        keypair = manager.set_bls_keypair({"secretKey": args.bls_secret_key})
    else:
        keypair = manager.new_bls_keypair()
    element = await manager.create_account_authorization_element(args.address, args.registrar)
    return {
        "authorizationElement": msgspec.to_builtins(element),
        "blsPublicKey": list(keypair.public_key),
        # Printed so a generated key can be stored; never logged
        "blsSecretKey": hex(keypair.secret_key) if args.bls_secret_key is None else None,
    }


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.normalized_log_level)

    try:
        output = asyncio.run(run(args, config))
    except (SignerError, KeystoreError, ValueError, OSError, msgspec.DecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    sys.stdout.write(msgspec.json.format(msgspec.json.encode(output)).decode() + "\n")

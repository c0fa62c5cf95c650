"""Configuration management using msgspec Struct."""

import argparse
import os
from pathlib import Path

import msgspec

ENV_PREFIX = "RELAYSIGNER_"


class Config(msgspec.Struct, frozen=True):
    """Application configuration using msgspec Struct."""

    # Chain the signatures are bound to
    chain_id: int = 1

    # Logging
    log_level: str = "INFO"

    # Remote signer (JSON-RPC endpoint of a node or wallet)
    rpc_url: str | None = None
    method_suffix: str = "_v4"
    json_stringify_request: bool = False
    remote_timeout: float = 60.0

    # Encrypted account keystores; passwords default to the keystores directory
    keystores_path: Path | None = None
    keystores_passwords_path: Path | None = None

    # BLS
    verify_bls_signatures: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.chain_id < 1:
            raise ValueError(f"chain_id must be positive, got {self.chain_id}")

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got {self.log_level}")

        if self.rpc_url is not None and not self.rpc_url.startswith(("http://", "https://")):
            raise ValueError(f"rpc_url must be an http(s) URL, got {self.rpc_url}")

        if self.remote_timeout <= 0:
            raise ValueError(f"remote_timeout must be positive, got {self.remote_timeout}")

        if self.keystores_passwords_path is not None and self.keystores_path is None:
            raise ValueError(
                "--keystores-path must be provided when --keystores-passwords-path is set"
            )

        if self.keystores_path is not None:
            if not self.keystores_path.exists():
                raise ValueError(f"keystores_path does not exist: {self.keystores_path}")
            if not self.keystores_path.is_dir():
                raise ValueError(f"keystores_path must be a directory: {self.keystores_path}")

        if self.keystores_passwords_path is not None:
            if not self.keystores_passwords_path.exists():
                raise ValueError(
                    f"keystores_passwords_path does not exist: {self.keystores_passwords_path}"
                )
            if not self.keystores_passwords_path.is_dir():
                raise ValueError(
                    f"keystores_passwords_path must be a directory: {self.keystores_passwords_path}"
                )

    @property
    def normalized_log_level(self) -> str:
        """Return normalized uppercase log level."""
        return self.log_level.upper()


def _dec_hook(type_: type, obj: object) -> object:
    if type_ is Path:
        return Path(str(obj))
    raise NotImplementedError(f"Unsupported type: {type_}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(ENV_PREFIX + name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_path(name: str) -> Path | None:
    value = os.getenv(ENV_PREFIX + name)
    return Path(value) if value else None


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Add configuration options to parser. Defaults come from RELAYSIGNER_* variables."""
    parser.add_argument(
        "--chain-id",
        type=int,
        default=int(os.getenv(ENV_PREFIX + "CHAIN_ID", "1")),
        help="Chain id signatures are bound to",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
        help="Logging level",
    )
    parser.add_argument(
        "--rpc-url",
        default=os.getenv(ENV_PREFIX + "RPC_URL"),
        help="JSON-RPC endpoint used to sign for accounts not held locally",
    )
    parser.add_argument(
        "--method-suffix",
        default=os.getenv(ENV_PREFIX + "METHOD_SUFFIX", "_v4"),
        help="Suffix of the eth_signTypedData method",
    )
    parser.add_argument(
        "--json-stringify-request",
        action="store_true",
        default=_env_bool("JSON_STRINGIFY_REQUEST", False),
        help="Send typed data to the remote signer as a JSON string",
    )
    parser.add_argument(
        "--remote-timeout",
        type=float,
        default=float(os.getenv(ENV_PREFIX + "REMOTE_TIMEOUT", "60")),
        help="Remote signer timeout in seconds",
    )
    parser.add_argument(
        "--keystores-path",
        type=Path,
        default=_env_path("KEYSTORES_PATH"),
        help="Directory of encrypted account keystore .json files",
    )
    parser.add_argument(
        "--keystores-passwords-path",
        type=Path,
        default=_env_path("KEYSTORES_PASSWORDS_PATH"),
        help="Directory of password .txt files (defaults to --keystores-path)",
    )
    parser.add_argument(
        "--no-verify-bls",
        dest="verify_bls_signatures",
        action="store_false",
        default=_env_bool("VERIFY_BLS_SIGNATURES", True),
        help="Skip pairing verification of produced BLS signatures",
    )


def config_from_args(args: argparse.Namespace) -> Config:
    """Build a validated Config from parsed arguments."""
    config_dict: dict[str, object] = {
        "chain_id": args.chain_id,
        "log_level": args.log_level,
        "rpc_url": args.rpc_url,
        "method_suffix": args.method_suffix,
        "json_stringify_request": args.json_stringify_request,
        "remote_timeout": args.remote_timeout,
        "keystores_path": args.keystores_path,
        "keystores_passwords_path": args.keystores_passwords_path,
        "verify_bls_signatures": args.verify_bls_signatures,
    }

    try:
        config = msgspec.convert(config_dict, Config, dec_hook=_dec_hook)
    except msgspec.ValidationError as e:
        raise ValueError(f"Configuration validation error: {e}")

    return config


def get_config(argv: list[str] | None = None) -> Config:
    """Parse command line arguments and return configuration."""
    parser = argparse.ArgumentParser(
        description="relaysigner - account and signature management for relayed transactions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_config_arguments(parser)
    return config_from_args(parser.parse_args(argv))


def get_config_from_env() -> Config:
    """Load configuration from RELAYSIGNER_* environment variables only."""
    config_dict: dict[str, object] = {
        "chain_id": int(os.getenv(ENV_PREFIX + "CHAIN_ID", "1")),
        "log_level": os.getenv(ENV_PREFIX + "LOG_LEVEL", "INFO"),
        "rpc_url": os.getenv(ENV_PREFIX + "RPC_URL"),
        "method_suffix": os.getenv(ENV_PREFIX + "METHOD_SUFFIX", "_v4"),
        "json_stringify_request": _env_bool("JSON_STRINGIFY_REQUEST", False),
        "remote_timeout": float(os.getenv(ENV_PREFIX + "REMOTE_TIMEOUT", "60")),
        "keystores_path": _env_path("KEYSTORES_PATH"),
        "keystores_passwords_path": _env_path("KEYSTORES_PASSWORDS_PATH"),
        "verify_bls_signatures": _env_bool("VERIFY_BLS_SIGNATURES", True),
    }

    try:
        config = msgspec.convert(config_dict, Config, dec_hook=_dec_hook)
    except msgspec.ValidationError as e:
        raise ValueError(f"Configuration validation error: {e}")

    return config

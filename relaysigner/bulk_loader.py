"""Bulk account loading from encrypted keystore directories."""

import logging
from pathlib import Path

from .keystore import Keystore, KeystoreError
from .models import KeystoreLoadResult
from .storage import AccountStorage, private_key_to_address

logger = logging.getLogger(__name__)


def scan_keystore_directory(directory: Path) -> dict[str, Path]:
    """Scan directory for keystore files.

    Returns a dict mapping keystore base name to the JSON file path.
    Only includes .json files that have corresponding .txt password files.

    Args:
        directory: Path to directory containing keystore files

    Returns:
        Dict mapping base name to keystore JSON file path

    """
    keystores: dict[str, Path] = {}

    if not directory.exists():
        logger.warning(f"Keystore directory does not exist: {directory}")
        return keystores

    if not directory.is_dir():
        logger.warning(f"Keystore path is not a directory: {directory}")
        return keystores

    for json_file in sorted(directory.glob("*.json")):
        password_file = json_file.with_suffix(".txt")

        if password_file.exists():
            keystores[json_file.stem] = json_file
        else:
            logger.warning(
                f"Skipping {json_file.name}: no matching password file {password_file.name}",
            )

    logger.info(f"Found {len(keystores)} keystore(s) with matching password files")
    return keystores


def scan_keystore_directories(
    keystores_path: Path,
    passwords_path: Path,
) -> dict[str, tuple[Path, Path]]:
    """Scan separate directories for keystore and password files.

    Returns a dict mapping keystore base name to (json_file, password_file) paths.
    Only includes .json files that have corresponding .txt files in passwords_path.
    """
    keystores: dict[str, tuple[Path, Path]] = {}

    if not keystores_path.is_dir():
        logger.warning(f"Keystores path is not a directory: {keystores_path}")
        return keystores

    for json_file in sorted(keystores_path.glob("*.json")):
        password_file = passwords_path / f"{json_file.stem}.txt"

        if password_file.exists():
            keystores[json_file.stem] = (json_file, password_file)
        else:
            logger.warning(
                f"Skipping {json_file.name}: no matching password file in {passwords_path}",
            )

    logger.info(f"Found {len(keystores)} keystore(s) with matching password files")
    return keystores


def load_keystore_with_password(
    keystore_path: Path,
    password_path: Path,
) -> KeystoreLoadResult:
    """Load a single keystore with its password.

    Raises:
        KeystoreError: If keystore is invalid or password is incorrect

    """
    keystore = Keystore.from_file(keystore_path)

    try:
        password = password_path.read_text().strip()
    except OSError as e:
        raise KeystoreError(f"Failed to read password file: {e!r}") from e

    private_key = keystore.decrypt(password)
    return KeystoreLoadResult(
        private_key=private_key,
        address=private_key_to_address(private_key),
        source=keystore_path,
    )


def _load_keystores(
    keystores: dict[str, tuple[Path, Path]],
    storage: AccountStorage,
) -> tuple[int, int]:
    success_count = 0
    for base_name, (json_file, password_file) in keystores.items():
        try:
            result = load_keystore_with_password(json_file, password_file)
            storage.add(result.private_key)
        except KeystoreError as e:
            logger.error(f"Failed to load keystore {base_name}: {e}")
        except ValueError as e:
            logger.error(f"Failed to add keystore {base_name} to storage: {e}")
        else:
            logger.info(f"Loaded keystore {base_name}: {result.address}")
            success_count += 1

    failure_count = len(keystores) - success_count
    logger.info(
        f"Keystore loading complete: {success_count} succeeded, {failure_count} failed",
    )
    return success_count, failure_count


def load_keystores_from_directory(
    directory: Path,
    storage: AccountStorage,
) -> tuple[int, int]:
    """Load all keystores from a directory into storage.

    Each .json keystore file must have a matching .txt file with the same base name
    containing the plaintext password.

    Returns:
        Tuple of (success_count, failure_count)

    """
    keystores = {
        base_name: (json_file, json_file.with_suffix(".txt"))
        for base_name, json_file in scan_keystore_directory(directory).items()
    }
    return _load_keystores(keystores, storage)


def load_external_keystores(
    keystores_path: Path,
    passwords_path: Path,
    storage: AccountStorage,
) -> tuple[int, int]:
    """Load keystores whose passwords live in a separate directory.

    Returns:
        Tuple of (success_count, failure_count)

    Raises:
        ValueError: If either path is not a valid directory

    """
    if not keystores_path.exists():
        raise ValueError(f"Keystores path does not exist: {keystores_path}")
    if not keystores_path.is_dir():
        raise ValueError(f"Keystores path is not a directory: {keystores_path}")
    if not passwords_path.exists():
        raise ValueError(f"Passwords path does not exist: {passwords_path}")
    if not passwords_path.is_dir():
        raise ValueError(f"Passwords path is not a directory: {passwords_path}")

    return _load_keystores(scan_keystore_directories(keystores_path, passwords_path), storage)

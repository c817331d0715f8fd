"""Watched address list file.

The list is a newline-delimited text file; blank lines and lines starting
with ``#`` are ignored. The AddressBook also owns the in-memory set of
addresses known from the last read, shared by the producer and the
removal commands.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"


class AddressFileError(Exception):
    """Raised when the address file cannot be read or rewritten."""


def parse_addresses(text: str) -> list[str]:
    """Parse address file contents into unique addresses, in file order."""
    addresses: list[str] = []
    seen: set[str] = set()
    for line in text.splitlines():
        value = line.strip()
        if not value or value.startswith(COMMENT_PREFIX) or value in seen:
            continue
        seen.add(value)
        addresses.append(value)
    return addresses


def write_text_atomic(path: Path, text: str) -> None:
    """Replace a file's contents in one step via a temporary sibling file."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(text)
        # mkstemp creates 0600 files; keep the original permissions
        with contextlib.suppress(OSError):
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class AddressBook:
    """Reads and edits the watched address file.

    Attributes:
        path: Location of the address file.
        known: Addresses seen by the last completed change check.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.known: set[str] = set()

    def read(self) -> list[str] | None:
        """Read the current addresses.

        Read failures are logged and yield None so callers can leave their
        state unchanged until the next change.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Address file %s does not exist", self.path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error reading address file %s: %s", self.path, e)
            return None
        return parse_addresses(text)

    def remove(self, address: str) -> bool:
        """Remove an address from the file and the known set.

        Comments and blank lines are kept; every address line holding the
        address is dropped. Comment text never counts as an address.

        Returns:
            True if the address was listed and has been removed, False if it
            was not listed (nothing is changed).

        Raises:
            AddressFileError: If the file cannot be read or rewritten.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise AddressFileError(f"Cannot read {self.path}: {e}") from e

        if address not in parse_addresses(text):
            return False

        kept = [line for line in text.splitlines() if line.strip() != address]

        try:
            write_text_atomic(self.path, "\n".join(kept) + "\n" if kept else "")
        except OSError as e:
            raise AddressFileError(f"Cannot write {self.path}: {e}") from e

        self.known.discard(address)
        logger.info(
            "Removed %s from %s (%d addresses remain)",
            address,
            self.path,
            len(parse_addresses("\n".join(kept))),
        )
        return True

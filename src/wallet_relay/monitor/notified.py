"""Persisted set of addresses that were already announced."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from wallet_relay.monitor.addresses import write_text_atomic

logger = logging.getLogger(__name__)


class NotifiedSet:
    """Durable record of announced addresses, stored as a JSON array.

    The set only grows while monitoring; ``discard`` exists for the explicit
    removal action.
    """

    def __init__(self, path: Path | str, addresses: Iterable[str] = ()) -> None:
        self.path = Path(path)
        self._addresses: set[str] = set(addresses)

    @classmethod
    def load(cls, path: Path | str) -> NotifiedSet:
        """Load the set from disk. A missing or unreadable file gives an empty set."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info("No notified-set file at %s, starting empty", path)
            return cls(path)
        except (OSError, ValueError) as e:
            logger.error("Error reading notified-set file %s: %s", path, e)
            return cls(path)

        if not isinstance(data, list):
            logger.error("Notified-set file %s does not hold a JSON array", path)
            return cls(path)

        addresses = [item for item in data if isinstance(item, str)]
        logger.info("Loaded %d notified addresses from %s", len(addresses), path)
        return cls(path, addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._addresses

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self) -> Iterator[str]:
        return iter(self._addresses)

    def add_all(self, addresses: Iterable[str]) -> int:
        """Add addresses, returning how many were not already present."""
        before = len(self._addresses)
        self._addresses.update(addresses)
        return len(self._addresses) - before

    def discard(self, address: str) -> bool:
        """Forget an address. Returns True if it was present."""
        if address in self._addresses:
            self._addresses.remove(address)
            return True
        return False

    def save(self) -> bool:
        """Rewrite the file with the full set.

        Returns:
            True on success; write failures are logged and return False.
        """
        try:
            write_text_atomic(self.path, json.dumps(sorted(self._addresses), indent=2) + "\n")
        except OSError as e:
            logger.error("Error writing notified-set file %s: %s", self.path, e)
            return False
        return True

"""Monitoring layer - address file watching and change notifications."""

from wallet_relay.monitor.addresses import AddressBook, AddressFileError, parse_addresses
from wallet_relay.monitor.notified import NotifiedSet
from wallet_relay.monitor.producer import CheckResult, NotificationProducer
from wallet_relay.monitor.watcher import FileChangeDetector

__all__ = [
    "AddressBook",
    "AddressFileError",
    "CheckResult",
    "FileChangeDetector",
    "NotificationProducer",
    "NotifiedSet",
    "parse_addresses",
]

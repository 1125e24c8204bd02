#!/usr/bin/env python3
"""
ST Installer Application Config
Reads and edits SillyTavern's own config.yaml (port, whitelist)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535

IPV4_PATTERN = re.compile(
    r'^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$'
)


class ConfigWriteError(Exception):
    """config.yaml could not be read, parsed or written"""


class AppConfigStore:
    """
    YAML document on disk with backup-on-save.

    A save first renames the existing file to <name>.bak.<timestamp>; if
    writing the new content fails the backup is renamed back.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """
        Load the document

        Raises:
            ConfigWriteError: File missing, unreadable or not a YAML mapping
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigWriteError(f"Could not read {self.path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigWriteError(f"Could not parse {self.path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigWriteError(f"{self.path} does not contain a YAML mapping")
        return data

    def backup_path(self, now: Optional[datetime] = None) -> Path:
        stamp = (now or datetime.now()).strftime('%Y%m%d%H%M%S')
        return self.path.with_name(f"{self.path.name}.bak.{stamp}")

    def save(self, data: Dict[str, Any]) -> Optional[Path]:
        """
        Write data, keeping a timestamped backup of the previous file

        Returns:
            Backup path, or None when there was no previous file

        Raises:
            ConfigWriteError: Writing failed (the previous file is restored)
        """
        try:
            content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as e:
            raise ConfigWriteError(f"Could not serialize configuration: {e}") from e

        backup: Optional[Path] = None
        if self.path.exists():
            candidate = self.backup_path()
            try:
                self.path.rename(candidate)
                backup = candidate
                logger.info("Backed up %s to %s", self.path, candidate)
            except OSError as e:
                logger.warning("Could not back up %s: %s", self.path, e)

        try:
            self.path.write_text(content, encoding='utf-8')
        except OSError as e:
            if backup is not None:
                try:
                    backup.rename(self.path)
                    logger.warning("Write failed, restored %s from %s", self.path, backup)
                except OSError as restore_error:
                    logger.error("Restoring %s failed: %s", backup, restore_error)
            raise ConfigWriteError(f"Could not write {self.path}: {e}") from e

        return backup


def validate_port(value: Any) -> int:
    """
    Parse a port number

    Raises:
        ValueError: Not an integer in 1-65535
    """
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"Invalid port number: {value!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"Port must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    return port


def is_valid_ipv4(address: str) -> bool:
    return bool(IPV4_PATTERN.match(address))


def current_port(data: Dict[str, Any]) -> Optional[Any]:
    return data.get('port')


def set_port(store: AppConfigStore, value: Any) -> Tuple[int, Optional[Path]]:
    """
    Validate and store a new port

    Returns:
        (port, backup path)
    """
    port = validate_port(value)
    data = store.load()
    data['port'] = port
    backup = store.save(data)
    logger.info("Port set to %d", port)
    return port, backup


def current_whitelist(data: Dict[str, Any]) -> List[str]:
    """Whitelist entries in file order, trimmed and de-duplicated"""
    entries: List[str] = []
    raw = data.get('whitelist')
    if not isinstance(raw, list):
        return entries
    for item in raw:
        if isinstance(item, str):
            address = item.strip()
            if address and address not in entries:
                entries.append(address)
    return entries


@dataclass
class WhitelistUpdate:
    """What add_to_whitelist did with each submitted address"""
    added: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    final: List[str] = field(default_factory=list)
    backup: Optional[Path] = None


def parse_addresses(text: str) -> List[str]:
    """Split comma-separated input into trimmed, non-empty entries"""
    return [part.strip() for part in text.split(',') if part.strip()]


def add_to_whitelist(store: AppConfigStore, addresses: List[str]) -> WhitelistUpdate:
    """
    Append valid new IPv4 addresses to the whitelist, preserving order

    Args:
        store: Application config store
        addresses: Submitted addresses; invalid and duplicate ones are skipped

    Returns:
        WhitelistUpdate describing the result
    """
    data = store.load()
    update = WhitelistUpdate()
    entries = current_whitelist(data)

    for address in addresses:
        address = address.strip()
        if not address:
            continue
        if not is_valid_ipv4(address):
            logger.warning("Ignoring invalid IP address %r", address)
            update.invalid.append(address)
            continue
        if address in entries:
            update.duplicates.append(address)
            continue
        entries.append(address)
        update.added.append(address)

    data['whitelist'] = entries
    update.final = entries
    update.backup = store.save(data)
    return update

#!/usr/bin/env python3
"""
ST Installer Failure Classifier
Maps captured tool diagnostics to error kinds in one place
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Pattern


class ErrorKind(Enum):
    """What a captured diagnostic says happened"""
    NONE = "none"
    NO_LOCAL_CHANGES = "no_local_changes"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    OWNERSHIP = "ownership"              # safe.directory / permission refusal
    MERGE_CONFLICT = "merge_conflict"    # conflicting content or non fast-forward
    NETWORK = "network"
    NOT_FOUND = "not_found"              # executable missing
    OTHER = "other"


@dataclass(frozen=True)
class FailurePattern:
    """One pattern-to-kind rule"""
    kind: ErrorKind
    regex: Pattern

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


def _rule(kind: ErrorKind, *phrases: str) -> FailurePattern:
    return FailurePattern(kind, re.compile('|'.join(phrases), re.IGNORECASE | re.MULTILINE))


# Order matters: ownership refusals also mention "fatal:", conflicts can
# appear in pull output alongside network chatter.
FAILURE_PATTERNS: List[FailurePattern] = [
    _rule(
        ErrorKind.OWNERSHIP,
        r'detected dubious ownership',
        r'unsafe repository',
        r'safe\.directory',
        r'insufficient permission',
        r'permission denied(?! \(publickey)',
        r'access is denied',
    ),
    _rule(
        ErrorKind.MERGE_CONFLICT,
        r'^CONFLICT \(',
        r'merge conflict',
        r'would be overwritten by (merge|checkout)',
        r'needs merge',
        r'you have unmerged files',
        r'could not restore untracked files',
        r'already exists, no checkout',
        r'not possible to fast-forward',
        r'divergent branches',
        r'please commit your changes or stash them',
    ),
    _rule(
        ErrorKind.NETWORK,
        r'could not resolve host',
        r'unable to access',
        r'could not read from remote repository',
        r'permission denied \(publickey',
        r'failed to connect',
        r'connection (timed out|refused|reset)',
        r'operation timed out',
        r'network is unreachable',
        r'the remote end hung up',
        r'early eof',
        r'rpc failed',
        r'ssl certificate problem',
        r'gnutls_handshake',
    ),
    _rule(
        ErrorKind.NOT_FOUND,
        r'no such file or directory',
        r'is not recognized as an internal or external command',
        r'cannot find the file specified',
    ),
    _rule(
        ErrorKind.NO_LOCAL_CHANGES,
        r'no local changes to save',
        r'no stash entries found',
    ),
    _rule(
        ErrorKind.ALREADY_UP_TO_DATE,
        r'already up[ -]to[ -]date',
    ),
]


def classify(text: Optional[str], default: ErrorKind = ErrorKind.OTHER) -> ErrorKind:
    """
    Classify a captured diagnostic

    Args:
        text: Combined stdout/stderr of a tool invocation
        default: Kind returned when no rule matches

    Returns:
        The kind of the first matching rule, or default
    """
    if not text:
        return default

    for pattern in FAILURE_PATTERNS:
        if pattern.matches(text):
            return pattern.kind

    return default

"""
Identities decrypt and recipients encrypt; both are loaded once from files.
"""

import logging
import pathlib
import typing

import attr
import pyrage

from .utils import ConfigNotFoundError

log = logging.getLogger(__name__)

Identities = typing.Sequence[typing.Any]
Recipients = typing.Sequence[typing.Any]


@attr.s(frozen=True, kw_only=True)
class KeyMaterial:
    identities: Identities = attr.ib(converter=tuple, factory=tuple)
    recipients: Recipients = attr.ib(converter=tuple, factory=tuple)


def _read(path: pathlib.Path, hint: str) -> str:
    try:
        return path.read_text()
    except OSError as error:
        raise ConfigNotFoundError(
            f"Could not read {path} ({error.strerror or error})\n{hint}") from error


def _content_lines(text: str) -> typing.Iterator[typing.Tuple[int, str]]:
    for number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if line and not line.startswith('#'):
            yield number, line


def load_identities(path: pathlib.Path) -> Identities:
    """Load age or OpenSSH private keys from a file."""
    hint = (f"- If you don't have one:   age-keygen --output {path}\n"
            f"- Or point to another key: --identities /path/to/key.txt")
    text = _read(path, hint)

    if text.lstrip().startswith('-----BEGIN'):
        try:
            return (pyrage.ssh.Identity.from_buffer(text.encode()),)
        except pyrage.IdentityError as error:
            raise ConfigNotFoundError(
                f"Failed to parse the SSH identity in {path}: {error}") from error

    identities = []
    for number, line in _content_lines(text):
        if not line.startswith('AGE-SECRET-KEY-'):
            raise ConfigNotFoundError(
                f"Unsupported identity on line {number} of {path}")
        try:
            identities.append(pyrage.x25519.Identity.from_str(line))
        except pyrage.IdentityError as error:
            raise ConfigNotFoundError(
                f"Failed to parse the identity on line {number} of {path}: {error}") from error

    if not identities:
        raise ConfigNotFoundError(f"No identities in {path}\n{hint}")

    log.debug(f"Loaded {len(identities)} identities from {path}")
    return tuple(identities)


def load_recipients(path: pathlib.Path) -> Recipients:
    """Load age and SSH public keys, one per line."""
    hint = ("- Create one and commit it to your repository (recommended).\n"
            "- Example (one public key per line): age1xxxx...")
    text = _read(path, hint)

    recipients = []
    for number, line in _content_lines(text):
        try:
            if line.startswith('age1'):
                recipients.append(pyrage.x25519.Recipient.from_str(line))
            elif line.startswith('ssh-'):
                recipients.append(pyrage.ssh.Recipient.from_str(line))
            else:
                raise ConfigNotFoundError(
                    f"Unsupported recipient on line {number} of {path}")
        except pyrage.RecipientError as error:
            raise ConfigNotFoundError(
                f"Failed to parse the recipient on line {number} of {path}: {error}") from error

    if not recipients:
        raise ConfigNotFoundError(
            f"No recipients in {path}; add at least one age public key\n{hint}")

    log.debug(f"Loaded {len(recipients)} recipients from {path}")
    return tuple(recipients)

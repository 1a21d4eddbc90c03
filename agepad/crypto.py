import io
import logging
import os
import pathlib
import tempfile
import typing

import attr
import pyrage

from .keys import Identities, Recipients
from .utils import AtomicWriteError, DecryptError, EncryptError, LockoutError

log = logging.getLogger(__name__)

TEMP_PREFIX = '.agepad-tmp-'
ARMOR_HEADER = b'-----BEGIN AGE ENCRYPTED FILE-----'


@attr.s(frozen=True)
class Age:
    """Encrypt and decrypt age envelopes without plaintext touching disk."""

    temp_prefix: str = attr.ib(default=TEMP_PREFIX)

    def open(self, stream: typing.BinaryIO, identities: Identities) -> bytes:
        """Decrypt an armored or binary envelope read from a stream."""
        envelope = stream.read()
        armored = envelope.lstrip().startswith(ARMOR_HEADER)
        log.debug(f"Opening an envelope (armored={armored})")
        try:
            return pyrage.decrypt(envelope, list(identities))
        except pyrage.DecryptError as error:
            raise DecryptError(f"Could not decrypt: {error}") from error

    def decrypt(self, path: pathlib.Path, identities: Identities) -> bytes:
        log.debug(f"Decrypting {path}")
        try:
            with path.open('rb') as stream:
                return self.open(stream, identities)
        except OSError as error:
            raise DecryptError(f"Could not open {path}: {error.strerror or error}") from error
        except DecryptError as error:
            raise DecryptError(f"Could not decrypt {path}: {error.__cause__}") from error

    def contents(self, path: pathlib.Path, identities: Identities) -> str:
        """Decrypt a file that holds text."""
        plaintext = self.decrypt(path, identities)
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as error:
            raise DecryptError(f"Decrypted contents of {path} are not UTF-8 text") from error

    def seal(
            self,
            stream: typing.BinaryIO,
            plaintext: bytes,
            recipients: Recipients,
            armour: bool) -> None:
        """Encrypt into a binary stream."""
        try:
            envelope = pyrage.encrypt(plaintext, list(recipients), armored=armour)
        except pyrage.EncryptError as error:
            raise EncryptError(f"Could not encrypt: {error}") from error
        stream.write(envelope)

    def encrypt_to_memory(
            self,
            plaintext: bytes,
            recipients: Recipients,
            armour: bool) -> bytes:
        buffer = io.BytesIO()
        self.seal(buffer, plaintext, recipients, armour)
        return buffer.getvalue()

    def preflight_check(
            self,
            plaintext: bytes,
            recipients: Recipients,
            identities: Identities,
            armour: bool) -> None:
        """
        Check the current identities can open what would be written.

        Nothing is written to disk. Raises LockoutError if saving would lock
        the user out of their own file.
        """
        ciphertext = self.encrypt_to_memory(plaintext, recipients, armour)
        try:
            self.open(io.BytesIO(ciphertext), identities)
        except DecryptError as error:
            raise LockoutError(
                "Preflight decrypt failed with your current identities; "
                "saving would lock you out of this file. "
                "Update the recipients or identities before saving.") from error

    def atomic_write(
            self,
            path: pathlib.Path,
            plaintext: bytes,
            recipients: Recipients,
            armour: bool) -> None:
        """
        Replace a file with a new envelope in a single rename.

        The temporary file lives in the destination's directory so the rename
        never crosses a filesystem. It is removed on every failure.
        """
        log.debug(f"Encrypting {path} (armour={armour})")
        try:
            fd, name = tempfile.mkstemp(prefix=self.temp_prefix, dir=path.parent)
        except OSError as error:
            raise AtomicWriteError(
                f"Could not create a temporary file in {path.parent}: "
                f"{error.strerror or error}") from error

        temporary = pathlib.Path(name)
        try:
            with os.fdopen(fd, 'wb') as stream:
                self.seal(stream, plaintext, recipients, armour)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(temporary, path)
        except OSError as error:
            raise AtomicWriteError(
                f"Could not write {path}: {error.strerror or error}") from error
        finally:
            temporary.unlink(missing_ok=True)

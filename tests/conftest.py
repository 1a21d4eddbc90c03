import pathlib
import typing

import attr
import click.testing
import pyrage
import pytest

import agepad.cli
from agepad.crypto import Age
from agepad.keys import KeyMaterial


@attr.s(frozen=True)
class KeyPair:
    name: str = attr.ib()
    identity = attr.ib(factory=pyrage.x25519.Identity.generate)

    def __str__(self):
        return self.name

    @property
    def recipient(self):
        return self.identity.to_public()

    def write_identities(self, directory: pathlib.Path) -> pathlib.Path:
        path = directory / f'{self.name}.key.txt'
        path.write_text(
            f"# created: 2026-01-01T00:00:00Z\n"
            f"# public key: {self.recipient}\n"
            f"{self.identity}\n")
        return path

    def write_recipients(self, directory: pathlib.Path) -> pathlib.Path:
        path = directory / f'{self.name}.recipients'
        path.write_text(f"# {self.name}\n{self.recipient}\n")
        return path


@pytest.fixture()
def alice() -> KeyPair:
    return KeyPair('alice')


@pytest.fixture()
def bob() -> KeyPair:
    return KeyPair('bob')


@pytest.fixture()
def carol() -> KeyPair:
    return KeyPair('carol')


@pytest.fixture()
def age() -> Age:
    return Age()


@pytest.fixture()
def keys(alice) -> KeyMaterial:
    return KeyMaterial(identities=[alice.identity], recipients=[alice.recipient])


@pytest.fixture()
def encrypt(age, alice):
    """Write an encrypted file, for alice unless told otherwise."""
    def encrypt_func(
            path: pathlib.Path,
            text: str,
            armour: bool = True,
            recipients: typing.Optional[typing.Sequence] = None) -> pathlib.Path:
        path.write_bytes(age.encrypt_to_memory(
            text.encode(), recipients or [alice.recipient], armour))
        return path

    return encrypt_func


@pytest.fixture()
def temporary_files():
    def temporary_files_func(directory: pathlib.Path) -> typing.List[pathlib.Path]:
        return sorted(directory.glob('.agepad-tmp-*'))

    return temporary_files_func


@pytest.fixture()
def invoke(tmp_path, alice):
    identities = alice.write_identities(tmp_path)

    def invoke_func(arguments: typing.Sequence[str]) -> click.testing.Result:
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(
            agepad.cli.main, ['--identities', identities.as_posix(), *arguments])

    return invoke_func

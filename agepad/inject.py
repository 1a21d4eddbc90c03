"""
Run a command with the KEY=VALUE lines of an encrypted file in its environment.

The current process is replaced by the command, so the decrypted values only
ever exist in one process.
"""

import logging
import os
import pathlib
import shutil
import typing

import attr
import click

from .crypto import Age
from .keys import Identities
from .utils import AgepadException

log = logging.getLogger(__name__)

Environment = typing.Dict[str, str]

USAGE = "agepad run -- <file.age> -- <command> [args...]"


@attr.s(frozen=True, kw_only=True)
class EnvInjectionRequest:
    path: pathlib.Path = attr.ib(converter=pathlib.Path)
    identities: Identities = attr.ib(converter=tuple)
    command: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    @command.validator
    def _check_command(self, attribute, value):
        if not value:
            raise ValueError("A command is required")


def parse_run_arguments(tokens: typing.Sequence[str]) -> typing.Tuple[str, typing.Tuple[str, ...]]:
    """
    Split the tokens of 'run -- <file> -- <command> [args...]'.

    Raises click.UsageError unless there is exactly one file between the
    first two '--' markers and a command after the second.
    """
    markers = [i for i, token in enumerate(tokens) if token == '--'][:2]
    if len(markers) < 2 or markers[1] == len(tokens) - 1:
        raise click.UsageError(f"Usage: {USAGE}")

    first, second = markers
    files = tokens[first + 1:second]
    if len(files) != 1:
        raise click.UsageError("Expected exactly one age file after the first --")
    return files[0], tuple(tokens[second + 1:])


def parse_env(text: str) -> Environment:
    """Read KEY=VALUE lines, skipping blanks, comments and malformed lines."""
    variables: Environment = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line or line.startswith('='):
            continue
        key, value = line.split('=', 1)
        key = key.strip()
        if key:
            variables[key] = value
    return variables


def merge_environment(text: str, environ: typing.Mapping[str, str]) -> Environment:
    environment = dict(environ)
    environment.update(parse_env(text))
    return environment


@attr.s(frozen=True)
class EnvInjector:
    age: Age = attr.ib(factory=Age)

    def environment(
            self,
            request: EnvInjectionRequest,
            environ: typing.Optional[typing.Mapping[str, str]] = None) -> Environment:
        text = self.age.contents(request.path, request.identities)
        return merge_environment(text, os.environ if environ is None else environ)

    def exec(self, request: EnvInjectionRequest) -> typing.NoReturn:
        environment = self.environment(request)

        program = shutil.which(request.command[0], path=environment.get('PATH'))
        if program is None:
            raise AgepadException(f"Command not found: {request.command[0]}")

        log.debug(f"Replacing the process with {program}")
        try:
            os.execve(program, list(request.command), environment)
        except OSError as error:
            raise AgepadException(
                f"Could not run {request.command[0]}: {error.strerror or error}") from error

"""
Syntax checks run on the buffer before anything is encrypted.

Each checker takes the content and raises ValidationError. Checkers are
chosen by the plaintext's extension; content under any other extension is
checked as a .env file only if it looks like one.
"""

import json
import pathlib
import tomllib
import typing

import yaml

from .utils import ValidationError

Checker = typing.Callable[[str], None]

CIPHERTEXT_SUFFIX = '.age'


def check_json(content: str) -> None:
    try:
        json.loads(content)
    except json.JSONDecodeError as error:
        raise ValidationError(f"JSON parse error: {error}", line=error.lineno) from error


def check_yaml(content: str) -> None:
    try:
        for _ in yaml.safe_load_all(content):
            pass
    except yaml.YAMLError as error:
        mark = getattr(error, 'problem_mark', None)
        raise ValidationError(
            f"YAML parse error: {error}",
            line=(mark.line + 1 if mark else None)) from error


def check_toml(content: str) -> None:
    try:
        tomllib.loads(content)
    except tomllib.TOMLDecodeError as error:
        raise ValidationError(f"TOML parse error: {error}") from error


def _env_lines(content: str) -> typing.Iterator[typing.Tuple[int, str]]:
    for number, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if line and not line.startswith('#'):
            yield number, line


def is_assignment(line: str) -> bool:
    return '=' in line and not line.startswith('=')


def looks_like_env(content: str) -> bool:
    """At least one meaningful line is a KEY=VALUE assignment."""
    return any(is_assignment(line) for _, line in _env_lines(content))


def check_env(content: str) -> None:
    for number, line in _env_lines(content):
        if not is_assignment(line):
            raise ValidationError(
                f".env parse error on line {number}: expected KEY=VALUE", line=number)
        key = line.split('=', 1)[0].strip()
        if not key or any(c in key for c in ' \t"\''):
            raise ValidationError(f".env invalid key on line {number}", line=number)


CHECKERS: typing.Dict[str, Checker] = {
    '.json': check_json,
    '.yaml': check_yaml,
    '.yml': check_yaml,
    '.toml': check_toml,
}


def extension(filename: typing.Union[str, pathlib.Path]) -> str:
    """The lower-cased extension of the plaintext, ignoring a trailing '.age'."""
    path = pathlib.PurePath(filename)
    if path.suffix.lower() == CIPHERTEXT_SUFFIX:
        path = path.with_suffix('')
    return path.suffix.lower()


def validate(filename: typing.Union[str, pathlib.Path], content: str) -> None:
    checker = CHECKERS.get(extension(filename))
    if checker is not None:
        checker(content)
    elif looks_like_env(content):
        check_env(content)

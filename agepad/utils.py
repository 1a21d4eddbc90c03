import pathlib
import typing

import click
import git

RECIPIENTS_FILE_NAME = '.age-recipients'


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def default_root() -> pathlib.Path:
    """The current git repository, or the working directory outside of one."""
    return find_git_directory() or pathlib.Path.cwd()


def default_recipients_file() -> pathlib.Path:
    """Recipients are pinned in the repository so every checkout agrees."""
    return default_root() / RECIPIENTS_FILE_NAME


def default_identities_file() -> pathlib.Path:
    return pathlib.Path.home() / '.config' / 'age' / 'key.txt'


class AgepadException(click.ClickException):
    pass


class ConfigNotFoundError(AgepadException):
    """An identities or recipients file is missing or unusable."""


class DecryptError(AgepadException):
    pass


class EncryptError(AgepadException):
    pass


class ValidationError(AgepadException):
    def __init__(self, message: str, line: typing.Optional[int] = None):
        super().__init__(message)
        self.line = line


class LockoutError(AgepadException):
    """Saving would produce a file the current identities cannot open."""


class AtomicWriteError(AgepadException):
    pass


class CrashGuardFault(AgepadException):
    exit_code = 3

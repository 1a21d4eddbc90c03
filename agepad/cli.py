import contextlib
import functools
import logging
import os.path
import pathlib
import typing

import attr
import click

from . import __doc__, __version__
from .crypto import Age
from .editor import EditorStateMachine
from .inject import EnvInjectionRequest, EnvInjector, parse_run_arguments
from .keys import KeyMaterial, load_identities, load_recipients
from .rotation import RotationJob
from .session import Session
from .utils import (
    AgepadException,
    CrashGuardFault,
    default_identities_file,
    default_recipients_file,
    default_root,
)

log = logging.getLogger(__name__)

CRASH_MESSAGE = (
    "[CRASH-GUARD] agepad hit a fatal error.\n"
    "Your edits were only in memory and never written to disk; "
    "reopen the file and reapply recent changes.")


def crash_message(session: Session) -> str:
    lines = len(session.last_snapshot.splitlines())
    return f"{CRASH_MESSAGE}\nThe last snapshot of the buffer had {lines} lines; it was not saved."


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def ok(path: pathlib.Path) -> str:
    return click.style(rel(path), fg='green')


def failed(path: pathlib.Path) -> str:
    return click.style(rel(path), fg='red')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


@contextlib.contextmanager
def crash_guard() -> typing.Iterator[None]:
    """Turn any unexpected exception into a fatal error with its own exit code."""
    try:
        yield
    except (click.ClickException, click.exceptions.Exit, click.Abort):
        raise
    except Exception as error:
        log.debug("Unhandled exception", exc_info=True)
        raise CrashGuardFault(CRASH_MESSAGE) from error


class GuardedGroup(click.Group):
    def invoke(self, ctx):
        with crash_guard():
            return super().invoke(ctx)


class PassthroughCommand(click.Command):
    """A command that receives its arguments untouched, '--' markers included."""

    def parse_args(self, ctx, args):
        if args[:1] == ['--help']:
            return super().parse_args(ctx, args)
        ctx.params['tokens'] = tuple(args)
        ctx.args = []
        return ctx.args


@attr.s(frozen=True, kw_only=True)
class Config:
    identities_file: pathlib.Path = attr.ib()
    recipients_file: pathlib.Path = attr.ib()
    path: typing.Optional[pathlib.Path] = attr.ib(default=None)
    armour: bool = attr.ib(default=True)
    view_only: bool = attr.ib(default=False)


identities_option = click.option(
    '--identities', 'identities_file',
    metavar='PATH',
    type=PathType(dir_okay=False),
    envvar='AGEPAD_IDENTITIES',
    default=default_identities_file,
    show_default='~/.config/age/key.txt',
    help="File of age identities (private keys) used to decrypt.")


@click.group(help=__doc__, cls=GuardedGroup, invoke_without_command=True)
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@identities_option
@click.option(
    '--file', 'path',
    metavar='PATH',
    type=PathType(dir_okay=False),
    default=None,
    help="The age file to edit.")
@click.option(
    '--recipients-file', 'recipients_file',
    metavar='PATH',
    type=PathType(dir_okay=False),
    envvar='AGEPAD_RECIPIENTS_FILE',
    default=default_recipients_file,
    show_default='.age-recipients in the git repository',
    help="File of age recipients (public keys) to encrypt for, one per line.")
@click.option(
    '--armor/--no-armor', 'armour',
    default=True,
    show_default=True,
    help="Write ASCII-armored output.")
@click.option(
    '--view', 'view_only',
    default=False,
    is_flag=True,
    help="Open in read-only view mode.")
@click.pass_context
def main(
        ctx,
        debug: bool,
        identities_file: pathlib.Path,
        path: typing.Optional[pathlib.Path],
        recipients_file: pathlib.Path,
        armour: bool,
        view_only: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    ctx.obj = Config(
        identities_file=identities_file,
        recipients_file=recipients_file,
        path=path,
        armour=armour,
        view_only=view_only)

    if ctx.invoked_subcommand is None:
        if path is None:
            raise click.UsageError(
                "--file is required (or use a subcommand: rotate | run)", ctx=ctx)
        edit(ctx.obj)


def edit(config: Config) -> None:
    """Open a file in the editor until the user quits."""
    # Imported here so the other commands never need a terminal.
    from .tui import EditorApp

    identities = load_identities(config.identities_file)
    recipients = () if config.view_only else load_recipients(config.recipients_file)
    keys = KeyMaterial(identities=identities, recipients=recipients)

    age = Age()
    session = Session(path=config.path, original=age.contents(config.path, keys.identities))
    editor = EditorStateMachine(
        session=session,
        keys=keys,
        age=age,
        armour=config.armour,
        view_only=config.view_only)
    try:
        EditorApp(editor).run()
    except Exception as error:
        log.debug("Editor crashed", exc_info=True)
        raise CrashGuardFault(crash_message(session)) from error


@main.command()
def version():
    """Show the application version."""
    click.echo(f"agepad {__version__}")


@main.command()
@click.option(
    '--root',
    type=PathType(file_okay=False, dir_okay=True, exists=True),
    default=default_root,
    show_default='the current git repository',
    help="Directory to search for encrypted files.")
@click.option(
    '--from', 'old_recipients_file',
    metavar='PATH',
    type=PathType(dir_okay=False),
    default=None,
    help="Current recipients file; only recorded in the log.")
@click.option(
    '--to', 'new_recipients_file',
    metavar='PATH',
    type=PathType(dir_okay=False),
    required=True,
    help="New recipients file to encrypt for.")
@click.option(
    '--identities', 'identities_file',
    metavar='PATH',
    type=PathType(dir_okay=False),
    default=None,
    help="Identities to decrypt with (defaults to the top-level --identities).")
@click.option(
    '--suffix',
    default='.age',
    show_default=True,
    help="Rotate files with names ending in this suffix (case-insensitive).")
@click.pass_obj
def rotate(
        config: Config,
        root: pathlib.Path,
        old_recipients_file: typing.Optional[pathlib.Path],
        new_recipients_file: pathlib.Path,
        identities_file: typing.Optional[pathlib.Path],
        suffix: str):
    """
    Re-encrypt encrypted files under a directory for new recipients.

    Each file is decrypted with your identities and re-encrypted (armored)
    for the recipients in the --to file. A file that fails is left as it was
    and the rest are still rotated.
    """
    identities = load_identities(identities_file or config.identities_file)
    new_recipients = load_recipients(new_recipients_file)
    if old_recipients_file:
        log.info(f"Rotating from the recipients in {old_recipients_file}")

    job = RotationJob(
        root=root,
        identities=identities,
        new_recipients=new_recipients,
        suffix=suffix)

    files = job.search()
    if not files:
        raise AgepadException(f"No {suffix} files found under {root}")

    report = job.run(files)
    for result in report.results:
        if result.ok:
            click.echo(f"Rotated {ok(result.path)}")
        else:
            click.echo(f"Failed {failed(result.path)}: {result.error.message}", err=True)

    click.echo(f"Rotation complete: {report.succeeded} succeeded, {report.failed} failed")
    if not report.ok:
        raise AgepadException(f"{report.failed} files could not be rotated")


@main.command(cls=PassthroughCommand, options_metavar='', context_settings={'help_option_names': ['--help']})
@click.pass_obj
def run(config: Config, tokens: typing.Sequence[str]):
    """
    Run a command with the variables from an encrypted .env file.

    \b
        agepad run -- <file.age> -- <command> [args...]

    The current process is replaced by the command; no child process or
    temporary file is created.
    """
    path, command = parse_run_arguments(tokens)
    request = EnvInjectionRequest(
        path=pathlib.Path(path),
        identities=load_identities(config.identities_file),
        command=command)
    EnvInjector().exec(request)

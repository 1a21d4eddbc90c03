"""
The save and quit protocols of the editor, independent of any terminal.

The front-end feeds events to EditorStateMachine.handle() and renders the
effects of the returned Transition.
"""

import datetime
import difflib
import enum
import logging
import typing

import attr

from .crypto import Age
from .keys import KeyMaterial
from .session import Session
from .utils import AgepadException, EncryptError, LockoutError, ValidationError
from .validators import validate

log = logging.getLogger(__name__)

DIFF_LIMIT = 2000


class State(enum.Enum):
    EDITING = 'editing'
    PENDING_QUIT_CONFIRM = 'pending-quit-confirm'
    PENDING_SAVE_CONFIRM = 'pending-save-confirm'
    SAVING = 'saving'
    EXITED = 'exited'


@attr.s(frozen=True)
class Edit:
    text: str = attr.ib()


@attr.s(frozen=True)
class Quit:
    pass


@attr.s(frozen=True)
class Diff:
    pass


@attr.s(frozen=True)
class Save:
    pass


@attr.s(frozen=True)
class Tick:
    pass


Event = typing.Union[Edit, Quit, Diff, Save, Tick]


@attr.s(frozen=True)
class Status:
    message: str = attr.ib()
    error: typing.Optional[Exception] = attr.ib(default=None)


@attr.s(frozen=True)
class ShowDiff:
    text: str = attr.ib()


@attr.s(frozen=True)
class Terminate:
    pass


Effect = typing.Union[Status, ShowDiff, Terminate]


@attr.s(frozen=True)
class Transition:
    state: State = attr.ib()
    effects: typing.Tuple[Effect, ...] = attr.ib(converter=tuple, default=())

    @property
    def terminated(self) -> bool:
        return any(isinstance(effect, Terminate) for effect in self.effects)


def unified_diff(original: str, edited: str, name: str) -> str:
    return '\n'.join(difflib.unified_diff(
        original.splitlines(),
        edited.splitlines(),
        fromfile=f"{name} (original)",
        tofile=f"{name} (edited)",
        n=3,
        lineterm=''))


def truncate(text: str, limit: int = DIFF_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n…(truncated)…"


@attr.s(kw_only=True)
class EditorStateMachine:
    session: Session = attr.ib()
    keys: KeyMaterial = attr.ib()
    age: Age = attr.ib(factory=Age)
    armour: bool = attr.ib(default=True)
    view_only: bool = attr.ib(default=False)
    validator: typing.Callable[[str, str], None] = attr.ib(default=validate)
    clock: typing.Callable[[], datetime.datetime] = attr.ib(default=datetime.datetime.now)

    _pending: State = attr.ib(default=State.EDITING, init=False)
    _saving: bool = attr.ib(default=False, init=False)
    _exited: bool = attr.ib(default=False, init=False)

    @property
    def state(self) -> State:
        if self._exited:
            return State.EXITED
        if self._saving:
            return State.SAVING
        if self.session.pending_confirm:
            return self._pending
        return State.EDITING

    @property
    def name(self) -> str:
        return self.session.path.name

    def diff(self) -> str:
        return unified_diff(self.session.original, self.session.buffer, self.name)

    def handle(self, event: Event) -> Transition:
        if self._exited:
            return Transition(State.EXITED)

        if isinstance(event, Edit):
            effects = self.on_edit(event)
        elif isinstance(event, Quit):
            effects = self.on_quit()
        elif isinstance(event, Diff):
            effects = self.on_diff()
        elif isinstance(event, Save):
            effects = self.on_save()
        elif isinstance(event, Tick):
            self.session.snapshot()
            effects = []
        else:
            raise TypeError(f"Unknown editor event {event!r}")

        return Transition(self.state, effects)

    def on_edit(self, event: Edit) -> typing.List[Effect]:
        if self.view_only:
            return [Status("View-only mode: editing disabled.")]
        self.session.edit(event.text)
        return []

    def on_quit(self) -> typing.List[Effect]:
        session = self.session
        if session.dirty and not self.view_only and not session.pending_confirm:
            session.pending_confirm = True
            self._pending = State.PENDING_QUIT_CONFIRM
            return [Status("Unsaved changes; quit again to discard them.")]
        self._exited = True
        return [Terminate()]

    def on_diff(self) -> typing.List[Effect]:
        self.session.pending_confirm = False
        if not self.session.dirty:
            return [Status("No changes to show (buffers identical).")]
        diff = self.diff()
        if not diff:
            return [Status("Only the trailing newline differs.")]
        return [Status("Diff preview:"), ShowDiff(truncate(diff))]

    def on_save(self) -> typing.List[Effect]:
        session = self.session
        if self.view_only:
            return [Status("View-only mode: saving disabled.")]

        text = session.buffer
        plaintext = text.encode('utf-8')
        try:
            self.validator(str(session.path), text)
        except ValidationError as error:
            return self.abort("Validation failed; not saved.", error)

        try:
            self.age.preflight_check(
                plaintext, self.keys.recipients, self.keys.identities, self.armour)
        except LockoutError as error:
            return self.abort("Save aborted. Update recipients or identities.", error)
        except EncryptError as error:
            return self.abort("Save aborted; preflight encryption failed.", error)

        if session.dirty and not session.pending_confirm:
            session.pending_confirm = True
            self._pending = State.PENDING_SAVE_CONFIRM
            return [
                Status("About to save. Save again to confirm."),
                ShowDiff(truncate(self.diff())),
            ]

        return self.commit(text, plaintext)

    def commit(self, text: str, plaintext: bytes) -> typing.List[Effect]:
        session = self.session
        self._saving = True
        try:
            self.age.atomic_write(
                session.path, plaintext, self.keys.recipients, self.armour)
        except AgepadException as error:
            return self.abort("Save failed; your edits are still in the editor.", error)
        finally:
            self._saving = False

        session.committed(text, self.clock())
        session.pending_confirm = False
        log.info(f"Saved {session.path}")
        return [Status(
            f"Saved {session.path} (armor={self.armour}) "
            f"at {session.saved_at.isoformat(timespec='seconds')}")]

    def abort(self, message: str, error: Exception) -> typing.List[Effect]:
        log.debug(f"{message} {error}")
        self.session.pending_confirm = False
        self.session.last_error = error
        return [Status(message, error=error)]

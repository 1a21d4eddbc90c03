"""
A full-screen terminal front-end for the editor.

Key presses and a periodic tick become editor events; the effects of each
transition are rendered in a status area above the text.
"""

import asyncio
import logging
import typing

from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.key_processor import KeyPressEvent
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.widgets import TextArea

from .editor import Diff, EditorStateMachine, Edit, Event, Quit, Save, ShowDiff, Status, Tick

log = logging.getLogger(__name__)

HELP = "Ctrl+D: diff  Ctrl+S: save  Ctrl+Q/Esc: quit"
SNAPSHOT_INTERVAL = 2.0


class EditorApp:
    def __init__(self, editor: EditorStateMachine, snapshot_interval: float = SNAPSHOT_INTERVAL):
        self.editor = editor
        self.snapshot_interval = snapshot_interval
        self.status = f"Opened {editor.session.path} (RAM). {HELP}"
        self.detail = ''
        self.error: typing.Optional[Exception] = None

        self.text_area = TextArea(
            text=editor.session.buffer,
            line_numbers=True,
            scrollbar=True,
            read_only=editor.view_only,
            focus_on_click=True)
        self.text_area.buffer.on_text_changed += self.on_text_changed

        self.application: Application = Application(
            layout=Layout(
                HSplit([
                    Window(
                        FormattedTextControl(self.render_status),
                        height=Dimension(min=1, max=16),
                        wrap_lines=True),
                    Window(height=1, char='─'),
                    self.text_area,
                    Window(FormattedTextControl(self.render_help), height=1),
                ]),
                focused_element=self.text_area),
            key_bindings=self.key_bindings(),
            full_screen=True)

    def key_bindings(self) -> KeyBindings:
        bindings = KeyBindings()

        @bindings.add('c-q')
        @bindings.add('escape', eager=True)
        def _quit(event: KeyPressEvent):
            self.dispatch(Quit())

        @bindings.add('c-d')
        def _diff(event: KeyPressEvent):
            self.dispatch(Diff())

        @bindings.add('c-s')
        def _save(event: KeyPressEvent):
            self.dispatch(Save())

        return bindings

    def on_text_changed(self, _buffer) -> None:
        self.dispatch(Edit(self.text_area.text))

    def dispatch(self, event: Event) -> None:
        try:
            transition = self.editor.handle(event)
        except Exception as error:
            # Handlers run as event loop callbacks; re-raise from run() instead.
            self.application.exit(exception=error)
            return
        log.debug(f"{type(event).__name__} -> {transition.state.value}")
        for effect in transition.effects:
            if isinstance(effect, Status):
                self.status = effect.message
                self.detail = ''
                self.error = effect.error
            elif isinstance(effect, ShowDiff):
                self.detail = effect.text
        if transition.terminated:
            self.application.exit()

    def render_status(self):
        fragments = [('bold', self.status)]
        if self.detail:
            fragments.append(('', '\n' + self.detail))
        if self.error is not None:
            fragments.append(('fg:ansired', f"\n[ERROR] {self.error}"))
        return fragments

    def render_help(self):
        mode = 'view-only' if self.editor.view_only else self.editor.state.value
        return [('reverse', f" {self.editor.session.path.name} [{mode}]  {HELP} ")]

    async def tick(self) -> None:
        while True:
            await asyncio.sleep(self.snapshot_interval)
            self.dispatch(Tick())

    def run(self) -> None:
        self.application.run(
            pre_run=lambda: self.application.create_background_task(self.tick()),
            set_exception_handler=False)

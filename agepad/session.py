import datetime
import pathlib
import typing

import attr


@attr.s(kw_only=True)
class Session:
    """
    The decrypted text being edited. It only ever lives in memory.

    The session is dirty when the buffer differs from the last text that was
    decrypted or saved; that is always recomputed, never stored.
    """

    path: pathlib.Path = attr.ib(converter=pathlib.Path)
    original: str = attr.ib()
    buffer: str = attr.ib()
    pending_confirm: bool = attr.ib(default=False)
    last_error: typing.Optional[Exception] = attr.ib(default=None)
    last_snapshot: str = attr.ib()
    saved_at: typing.Optional[datetime.datetime] = attr.ib(default=None)

    @buffer.default
    def _buffer_default(self) -> str:
        return self.original

    @last_snapshot.default
    def _last_snapshot_default(self) -> str:
        return self.original

    @property
    def dirty(self) -> bool:
        return self.buffer != self.original

    def edit(self, text: str) -> bool:
        """Replace the buffer, returning True if the content changed."""
        if text == self.buffer:
            return False
        self.buffer = text
        self.pending_confirm = False
        return True

    def snapshot(self) -> None:
        self.last_snapshot = self.buffer

    def committed(self, text: str, at: datetime.datetime) -> None:
        self.original = text
        self.saved_at = at
        self.last_error = None

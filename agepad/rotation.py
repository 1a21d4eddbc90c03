"""
Re-encrypt every age file under a directory for a new set of recipients.

Files are handled one at a time and independently: a file that fails is
left untouched and the rest of the batch carries on. The batch is not a
transaction; files that succeeded stay rotated when others fail.
"""

import logging
import pathlib
import typing

import attr

from .crypto import Age
from .keys import Identities, Recipients
from .utils import AgepadException

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class RotationResult:
    path: pathlib.Path = attr.ib()
    error: typing.Optional[AgepadException] = attr.ib(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None


@attr.s(frozen=True)
class RotationReport:
    results: typing.Tuple[RotationResult, ...] = attr.ib(converter=tuple)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def failures(self) -> typing.Sequence[RotationResult]:
        return tuple(result for result in self.results if not result.ok)


@attr.s(frozen=True, kw_only=True)
class RotationJob:
    root: pathlib.Path = attr.ib(converter=pathlib.Path)
    identities: Identities = attr.ib(converter=tuple)
    new_recipients: Recipients = attr.ib(converter=tuple)
    suffix: str = attr.ib(default='.age')
    age: Age = attr.ib(factory=Age)

    def search(self) -> typing.Sequence[pathlib.Path]:
        """Find files under the root whose names end with the suffix."""
        log.info(f"Searching for {self.suffix} files in {self.root}")
        suffix = self.suffix.lower()
        files = tuple(sorted(
            p for p in self.root.glob('**/*')
            if p.is_file() and p.name.lower().endswith(suffix)))
        log.info(f"Found {len(files)} {self.suffix} files in {self.root}")
        return files

    def rotate(self, path: pathlib.Path) -> RotationResult:
        try:
            plaintext = self.age.decrypt(path, self.identities)
        except AgepadException as error:
            log.error(f"Decrypt failed for {path}: {error.message}")
            return RotationResult(path, error)

        try:
            self.age.atomic_write(path, plaintext, self.new_recipients, armour=True)
        except AgepadException as error:
            log.error(f"Re-encrypt failed for {path}: {error.message}")
            return RotationResult(path, error)

        log.debug(f"Rotated {path}")
        return RotationResult(path)

    def run(self, files: typing.Optional[typing.Sequence[pathlib.Path]] = None) -> RotationReport:
        if files is None:
            files = self.search()
        log.info(f"Rotating {len(files)} files")
        report = RotationReport(self.rotate(path) for path in files)
        log.info(f"Rotated {report.succeeded} files, {report.failed} failed")
        return report

"""Watch Homebrew directories for file system events.

Operations run through `BrewQueue` modify these directories too, so a
running watcher will also report changes caused by queued operations. Stop
the watcher before submitting if only external changes are of interest.
"""

import os
from collections.abc import Iterable
from enum import Enum
from logging import getLogger
from pathlib import Path

from qtpy.QtCore import QFileSystemWatcher, QObject, Signal, Slot

from brew_manager.config import default_brew_path
from brew_manager.observer import notify

log = getLogger(__name__)


class BrewWatcherLocation(Enum):
    "Default Homebrew directories that can be watched"

    LIBRARY = 'library'
    FORMULA = 'formula'
    TAPS = 'taps'
    ALIASES = 'aliases'
    LINKED_KEGS = 'linked_kegs'
    PINNED_KEGS = 'pinned_kegs'


_CORE_TAP = ('Library', 'Taps', 'homebrew', 'homebrew-core')


def location_paths(
    locations: Iterable[BrewWatcherLocation], brew_path: str | None = None
) -> list[str]:
    """Directories for `locations` of the Homebrew install at `brew_path`.

    The repository holding ``Library`` is found by resolving symlinks to the
    executable. Kegs live under the prefix the executable is linked into.
    On Apple Silicon both are the same directory.
    """
    brew_path = Path(brew_path or default_brew_path())
    prefix = brew_path.parent.parent
    repository = brew_path.resolve().parent.parent
    kegs = prefix / 'var' / 'homebrew'
    paths = {
        BrewWatcherLocation.LIBRARY: repository / 'Library',
        BrewWatcherLocation.FORMULA: repository.joinpath(
            *_CORE_TAP, 'Formula'
        ),
        BrewWatcherLocation.TAPS: repository / 'Library' / 'Taps',
        BrewWatcherLocation.ALIASES: repository.joinpath(
            *_CORE_TAP, 'Aliases'
        ),
        BrewWatcherLocation.LINKED_KEGS: kegs / 'linked',
        BrewWatcherLocation.PINNED_KEGS: kegs / 'pinned',
    }
    return [str(paths[BrewWatcherLocation(loc)]) for loc in locations]


class BrewWatcher(QObject):
    """Report file system events in one or more Homebrew directories.

    Parameters
    ----------
    locations : iterable of BrewWatcherLocation, optional
        Default Homebrew directories to watch.
    paths : iterable of str, optional
        Additional absolute paths to watch, e.g. for Homebrew installs
        outside the default locations.
    delegate : object, optional
        Object with an ``on_event(watcher, path)`` method, called for every
        event in addition to the `eventOccurred` signal.
    brew_path : str, optional
        Homebrew executable used to resolve `locations`.
    """

    # path where the event occurred
    eventOccurred = Signal(str)

    def __init__(
        self,
        locations: Iterable[BrewWatcherLocation] = (),
        *,
        paths: Iterable[str] = (),
        delegate=None,
        brew_path: str | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.delegate = delegate
        self._paths = [
            *location_paths(dict.fromkeys(locations), brew_path),
            *(str(path) for path in paths),
        ]
        self._watcher: QFileSystemWatcher | None = None

    def paths(self) -> list[str]:
        return list(self._paths)

    def start_watching(self) -> None:
        if self._watcher is not None:
            return
        existing = []
        for path in self._paths:
            if os.path.exists(path):
                existing.append(path)
            else:
                log.warning('Cannot watch %s, it does not exist.', path)

        self._watcher = QFileSystemWatcher(self)
        if existing:
            self._watcher.addPaths(existing)
        self._watcher.directoryChanged.connect(self._on_event)
        self._watcher.fileChanged.connect(self._on_event)

    def stop_watching(self) -> None:
        if self._watcher is None:
            return
        watcher, self._watcher = self._watcher, None
        watcher.directoryChanged.disconnect(self._on_event)
        watcher.fileChanged.disconnect(self._on_event)
        watched = watcher.directories() + watcher.files()
        if watched:
            watcher.removePaths(watched)
        watcher.deleteLater()

    def is_watching(self) -> bool:
        return self._watcher is not None

    @Slot(str)
    def _on_event(self, path: str) -> None:
        log.debug('File system event at %s', path)
        self.eventOccurred.emit(path)
        notify(self.delegate, 'on_event', self, path)

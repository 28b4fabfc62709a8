"""Observer contract for brew operations.

Each submission to the brew queue carries an optional observer. The queue
calls up to three methods on it, all of them optional:

* ``on_output(operation, output)``
* ``on_finished(operation)``
* ``on_failed(operation, error)``

``on_finished`` and ``on_failed`` are mutually exclusive and delivered at
most once per submission. Output for streaming operations (e.g. install)
arrives one line per call while the process runs. Every other operation
gets a single ``on_output`` call with the whole output, immediately before
``on_finished``, and only if there was any output.
"""

from enum import IntEnum
from logging import getLogger

log = getLogger(__name__)


class BrewError(IntEnum):
    "Reasons for an operation failure"

    # absence of an error, never reported by the queue
    NONE = 0
    # Homebrew reported a failure or could not be launched
    UNKNOWN = 1
    # the operation was cancelled before or during execution
    OPERATION_CANCELLED = 2


class BrewObserver:
    """Base class for observers. Subclasses override what they need."""

    def on_output(self, operation, output: str) -> None:
        pass

    def on_finished(self, operation) -> None:
        pass

    def on_failed(self, operation, error: BrewError) -> None:
        pass


def notify(observer, event: str, *args) -> None:
    """Call `event` on `observer` if it implements it.

    Exceptions raised by the observer are logged, so one faulty observer
    cannot break the delivery of events to others.
    """
    if observer is None:
        return
    callback = getattr(observer, event, None)
    if not callable(callback):
        return
    try:
        callback(*args)
    except Exception:
        log.exception('Observer %r failed handling %s', observer, event)

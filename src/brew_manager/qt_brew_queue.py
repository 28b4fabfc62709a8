"""Execution queue for Homebrew operations.

The main object is `BrewQueue`, a `QObject` with the notion of a job queue.

Each submission becomes a `QueueEntry` holding the `BrewOperation`, the
observer to notify and a snapshot of the queue configuration. Entries wait
in a `deque` until a slot is free, then run on their own
`BrewProcessWorker` thread. Operations submitted in serial mode run one at
a time; all others run concurrently up to the configured bound.

Available actions for each entry are `submit`, `cancel`, `cancel_all`
and `cancel_all_of_type`.
"""

import itertools
import os
import threading
import time
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum, auto
from logging import getLogger
from typing import TypedDict

from qtpy.QtCore import QCoreApplication, QObject, QThread, Signal, Slot

from brew_manager.brew_operation import BrewActions, BrewOperation, JobId
from brew_manager.config import BrewConfig, default_brew_path
from brew_manager.observer import BrewError, notify
from brew_manager.qt_brew_process import BrewProcessWorker, ProcessResult

log = getLogger(__name__)

_job_ids = itertools.count(1)


class JobState(StrEnum):
    "Lifecycle of a queue entry"

    PENDING = auto()
    RUNNING = auto()
    FINISHED = auto()
    FAILED = auto()
    CANCELLED = auto()


class ProcessFinishedData(TypedDict):
    """Data about a finished queue entry."""

    job_id: JobId
    # None if no process ran to completion
    exit_code: int | None
    action: BrewActions
    arguments: tuple[str, ...]
    error: BrewError


@dataclass(eq=False)
class QueueEntry:
    """One submission of an operation to the queue."""

    job_id: JobId
    operation: BrewOperation
    observer: object
    config: BrewConfig
    state: JobState = JobState.PENDING
    worker: BrewProcessWorker | None = None
    cancelled: bool = False
    output: list[str] = field(default_factory=list)

    @property
    def limit(self) -> int:
        "Running entries allowed, this one included, for it to start"
        if self.config.concurrent:
            return self.config.max_concurrent_operations
        return 1

    def matches(self, target: 'JobId | BrewOperation') -> bool:
        if isinstance(target, BrewOperation):
            return self.operation is target or self.operation.is_equivalent(
                target
            )
        return self.job_id == target


class BrewQueue(QObject):
    """Queue for Homebrew operations."""

    # emitted when all jobs are finished. Not to be confused with
    # processFinished, which is emitted when each individual job is finished.
    # Tuple of exit codes for each individual job, None if it never ran
    allFinished = Signal(tuple)

    # emitted when each job reaches a terminal state
    # dict: ProcessFinishedData
    processFinished = Signal(dict)

    # emitted when each job starts running, with its operation
    started = Signal(object)

    # operation, output
    outputGenerated = Signal(object, str)
    # operation
    operationFinished = Signal(object)
    # operation, BrewError
    operationFailed = Signal(object, object)

    WORKER_CLASS = BrewProcessWorker

    def __init__(
        self, parent: QObject | None = None, config: BrewConfig | None = None
    ) -> None:
        super().__init__(parent)
        self._config = config.snapshot() if config else BrewConfig()
        self._queue: deque[QueueEntry] = deque()
        self._lock = threading.RLock()
        self._exit_codes: list[int | None] = []

    # -------------------------- Public API ------------------------------
    def submit(self, operation: BrewOperation, observer=None) -> JobId:
        """Queue an operation for execution.

        The operation runs on its own thread once a slot is free. Calling
        this method never blocks, and never fails because of the state of
        the queue or of Homebrew; failures reach the observer instead.

        Parameters
        ----------
        operation : BrewOperation
            The operation to perform.
        observer : object, optional
            Receives ``on_output``, ``on_finished`` and ``on_failed`` calls
            for this submission. Any subset of them may be implemented.

        Returns
        -------
        JobId : int
            An ID to reference the job. Use to cancel the process.
        """
        with self._lock:
            entry = QueueEntry(
                job_id=next(_job_ids),
                operation=operation,
                observer=observer,
                config=self._config.snapshot(),
            )
            operation.busy = True
            self._queue.append(entry)
            self._process_queue()
        return entry.job_id

    def install(self, formula: str, *options: str, observer=None) -> JobId:
        """Install `formula` with the given install `options`.

        Returns
        -------
        JobId : int
            An ID to reference the job. Use to cancel the process.
        """
        return self.submit(BrewOperation.install(formula, *options), observer)

    def uninstall(self, formula: str, *, observer=None) -> JobId:
        """Uninstall `formula`.

        Returns
        -------
        JobId : int
            An ID to reference the job. Use to cancel the process.
        """
        return self.submit(BrewOperation.uninstall(formula), observer)

    def upgrade(self, *formulae: str, observer=None) -> JobId:
        """Upgrade `formulae`, or all outdated formulae if none is given.

        Returns
        -------
        JobId : int
            An ID to reference the job. Use to cancel the process.
        """
        return self.submit(BrewOperation.upgrade(*formulae), observer)

    def cancel(self, target: JobId | BrewOperation) -> None:
        """Cancel a job.

        `target` is either a job ID or an operation. Operations match every
        queued entry running the same action with the same arguments.

        Pending jobs are removed right away and their observers notified.
        Running jobs are asked to terminate; their observers are notified
        once the process has actually ended. Nothing happens if no job
        matches.

        Parameters
        ----------
        target : JobId or BrewOperation
            Job to cancel.
        """
        self._cancel_matching(lambda entry: entry.matches(target))

    def cancel_all(self) -> None:
        """Cancel every queued and running job."""
        self._cancel_matching(lambda entry: True)

    def cancel_all_of_type(self, action: BrewActions) -> None:
        """Cancel every queued and running job performing `action`."""
        action = BrewActions(action)
        self._cancel_matching(lambda entry: entry.operation.action == action)

    def waitForFinished(self, msecs: int = 10000) -> bool:
        """Block and wait for all jobs to finish.

        Qt events of the calling thread are processed while waiting, so
        call this from the thread that owns the queue.

        Parameters
        ----------
        msecs : int, optional
            Time to wait, by default 10000. A negative value waits forever.

        Returns
        -------
        bool
            ``True`` if the queue drained in time.
        """
        deadline = None if msecs < 0 else time.monotonic() + msecs / 1000
        while self.hasJobs():
            if deadline is not None and time.monotonic() > deadline:
                return False
            QCoreApplication.processEvents()
            QThread.msleep(10)
        return True

    def hasJobs(self) -> bool:
        """True if there are jobs remaining in the queue."""
        with self._lock:
            return bool(self._queue)

    def currentJobs(self) -> int:
        """Return the number of pending and running jobs in the queue."""
        with self._lock:
            return len(self._queue)

    def runningJobs(self) -> int:
        """Return the number of jobs with a live process."""
        with self._lock:
            return self._running_count()

    # -------------------------- Configuration ---------------------------
    # Changes only apply to operations submitted afterwards.
    def brew_path(self) -> str:
        return self._config.brew_path

    def set_brew_path(self, path: str | None) -> None:
        """Set the Homebrew executable, or restore the default with None."""
        if path is None:
            path = default_brew_path()
        if not path:
            raise ValueError('Homebrew path cannot be empty!')
        with self._lock:
            self._config.brew_path = str(path)

    def environment(self) -> dict[str, str]:
        """Environment variables new operations will execute with."""
        with self._lock:
            if self._config.environment is None:
                return dict(os.environ)
            return dict(self._config.environment)

    def set_environment(self, environment: Mapping[str, str] | None) -> None:
        """Replace the environment of future operations.

        ``None`` restores inheriting the environment of this process.
        """
        with self._lock:
            self._config.environment = (
                None if environment is None else dict(environment)
            )

    def concurrent_operations(self) -> bool:
        return self._config.concurrent

    def set_concurrent_operations(self, concurrent: bool) -> None:
        """Run future operations concurrently (True) or serially (False)."""
        with self._lock:
            self._config.concurrent = bool(concurrent)

    def max_concurrent_operations(self) -> int:
        return self._config.max_concurrent_operations

    def set_max_concurrent_operations(self, value: int) -> None:
        if value < 1:
            raise ValueError(
                'At least one concurrent operation must be allowed, '
                f'got {value}!'
            )
        with self._lock:
            self._config.max_concurrent_operations = value

    # -------------------------- Private methods ------------------------------
    def _running_count(self) -> int:
        return sum(entry.state == JobState.RUNNING for entry in self._queue)

    def _process_queue(self) -> None:
        with self._lock:
            for entry in list(self._queue):
                if entry.state != JobState.PENDING:
                    continue
                # first come, first served: a job that cannot start blocks
                # every job queued after it
                if self._running_count() >= entry.limit:
                    break
                self._start_entry(entry)

    def _start_entry(self, entry: QueueEntry) -> None:
        worker = self.WORKER_CLASS(
            entry.job_id,
            entry.config.brew_path,
            entry.operation.arguments(),
            entry.config.environment,
        )
        worker.outputReady.connect(self._on_output_ready)
        worker.processDone.connect(self._on_process_done)
        entry.worker = worker
        entry.state = JobState.RUNNING
        self._log(
            f"Starting '{entry.config.brew_path}' with args "
            f'{entry.operation.arguments()}'
        )
        worker.start()
        self.started.emit(entry.operation)

    def _cancel_matching(self, predicate) -> None:
        removed: list[QueueEntry] = []
        with self._lock:
            for entry in list(self._queue):
                if entry.cancelled or not predicate(entry):
                    continue
                entry.cancelled = True
                if entry.state == JobState.PENDING:
                    # never started, no process to wait for
                    self._queue.remove(entry)
                    entry.state = JobState.CANCELLED
                    removed.append(entry)
                else:
                    entry.worker.request_termination()
                    self._log(f'Terminating job {entry.job_id}.')

        for entry in removed:
            self._log(f'Job {entry.job_id} was cancelled before starting.')
            self._release(entry)
            self._report(entry, BrewError.OPERATION_CANCELLED, None)

        if removed:
            self._process_queue()
            self._check_all_finished(*(None for _ in removed))

    def _find_running(self, job_id: JobId) -> QueueEntry | None:
        for entry in self._queue:
            if entry.job_id == job_id and entry.state == JobState.RUNNING:
                return entry
        return None

    @Slot(object, str)
    def _on_output_ready(self, job_id: JobId, line: str) -> None:
        with self._lock:
            entry = self._find_running(job_id)
            if entry is None:
                return
            if not entry.operation.streams_output:
                entry.output.append(line)
                return
        self._relay_output(entry, line)

    @Slot(object, object)
    def _on_process_done(self, job_id: JobId, result: ProcessResult) -> None:
        with self._lock:
            entry = self._find_running(job_id)
            if entry is None:
                return
            self._queue.remove(entry)
            if entry.cancelled:
                error = BrewError.OPERATION_CANCELLED
            elif result.succeeded:
                error = BrewError.NONE
            else:
                error = BrewError.UNKNOWN
            entry.state = {
                BrewError.NONE: JobState.FINISHED,
                BrewError.UNKNOWN: JobState.FAILED,
                BrewError.OPERATION_CANCELLED: JobState.CANCELLED,
            }[error]
            worker, entry.worker = entry.worker, None

        # the thread is done once processDone has been emitted
        worker.wait()

        if result.error:
            self._log(f'Task finished with errors! Error: {result.error}.')
        else:
            self._log(
                f'Task finished with exit code {result.exit_code} '
                f'(crashed: {result.crashed}).'
            )

        self._release(entry)
        if error == BrewError.NONE and entry.output:
            self._relay_output(entry, '\n'.join(entry.output))
        self._report(entry, error, result.exit_code)
        self._process_queue()
        self._check_all_finished(result.exit_code)

    def _relay_output(self, entry: QueueEntry, output: str) -> None:
        notify(entry.observer, 'on_output', entry.operation, output)
        self.outputGenerated.emit(entry.operation, output)

    def _release(self, entry: QueueEntry) -> None:
        with self._lock:
            entry.operation.busy = any(
                other.operation is entry.operation for other in self._queue
            )

    def _report(
        self, entry: QueueEntry, error: BrewError, exit_code: int | None
    ) -> None:
        if error == BrewError.NONE:
            notify(entry.observer, 'on_finished', entry.operation)
            self.operationFinished.emit(entry.operation)
        else:
            notify(entry.observer, 'on_failed', entry.operation, error)
            self.operationFailed.emit(entry.operation, error)

        self.processFinished.emit(
            {
                'job_id': entry.job_id,
                'exit_code': exit_code,
                'action': entry.operation.action,
                'arguments': tuple(entry.operation.arguments()),
                'error': error,
            }
        )

    def _check_all_finished(self, *exit_codes: int | None) -> None:
        with self._lock:
            self._exit_codes.extend(exit_codes)
            if self._queue:
                return
            all_exit_codes = tuple(self._exit_codes)
            self._exit_codes = []
        self.allFinished.emit(all_exit_codes)

    def _log(self, msg: str) -> None:
        log.debug(msg)

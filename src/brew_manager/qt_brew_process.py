"""Subprocess supervision for a single brew operation.

`BrewProcessWorker` is a `QThread` that owns exactly one `QProcess`. The
process is created inside the worker thread and driven with the blocking
`waitFor*` API, so waiting on Homebrew never blocks the thread that owns
the queue. Output lines and the final result travel back through signals.
"""

import os
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from logging import getLogger

from qtpy.QtCore import QProcess, QProcessEnvironment, QThread, Signal

from brew_manager.brew_operation import JobId

log = getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a process run by a `BrewProcessWorker`."""

    # None when the process never ran
    exit_code: int | None = None
    # True if the process died from a signal instead of exiting
    crashed: bool = False
    # description of a launch failure
    error: str | None = None
    # True if termination was requested before the process ended
    terminated: bool = False

    @property
    def succeeded(self) -> bool:
        return (
            self.error is None
            and not self.crashed
            and not self.terminated
            and self.exit_code == 0
        )


class BrewProcessWorker(QThread):
    """Run one brew process and relay its output line by line."""

    # job id, one line of output without its line terminator
    outputReady = Signal(object, str)

    # job id, ProcessResult. Emitted exactly once, last.
    processDone = Signal(object, object)

    # how long each wait for output may block before termination
    # requests are checked again
    POLL_INTERVAL_MSECS = 100

    # time allowed between terminate() and kill()
    TERMINATE_GRACE_SECONDS = 5.0

    def __init__(
        self,
        job_id: JobId,
        program: str,
        arguments: Sequence[str],
        environment: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.job_id = job_id
        self._program = str(program)
        self._arguments = [str(arg) for arg in arguments]
        self._environment = (
            None if environment is None else dict(environment)
        )
        self._termination_requested = threading.Event()

    # -------------------------- Public API ------------------------------
    def request_termination(self) -> None:
        """Ask the worker to terminate its process.

        Safe to call from any thread, any number of times, including after
        the process has exited.
        """
        self._termination_requested.set()

    def termination_requested(self) -> bool:
        return self._termination_requested.is_set()

    def process_environment(self) -> QProcessEnvironment:
        "Environment the process is launched with."
        if self._environment is None:
            return QProcessEnvironment.systemEnvironment()
        env = QProcessEnvironment()
        for key, value in self._environment.items():
            env.insert(str(key), str(value))
        return env

    # -------------------------- QThread ---------------------------------
    def run(self) -> None:
        if self.termination_requested():
            self.processDone.emit(self.job_id, ProcessResult(terminated=True))
            return

        process = QProcess()
        process.setProcessChannelMode(
            QProcess.ProcessChannelMode.MergedChannels
        )
        process.setProgram(self._program)
        process.setArguments(self._arguments)
        process.setProcessEnvironment(self.process_environment())

        log.debug(
            "Starting '%s' with args %s", self._program, self._arguments
        )
        process.start()
        if not process.waitForStarted(-1):
            log.warning(
                "Could not start '%s': %s",
                self._program,
                process.errorString(),
            )
            self.processDone.emit(
                self.job_id,
                ProcessResult(
                    error=process.errorString(),
                    terminated=self.termination_requested(),
                ),
            )
            return

        self.processDone.emit(self.job_id, self._supervise(process))

    # -------------------------- Private methods -------------------------
    def _supervise(self, process: QProcess) -> ProcessResult:
        terminate_sent_at = None
        killed = False
        while process.state() != QProcess.ProcessState.NotRunning:
            if self.termination_requested():
                if terminate_sent_at is None:
                    self._end_process(process)
                    terminate_sent_at = time.monotonic()
                elif (
                    not killed
                    and time.monotonic() - terminate_sent_at
                    > self.TERMINATE_GRACE_SECONDS
                ):
                    log.warning(
                        "'%s' ignored termination, killing it", self._program
                    )
                    process.kill()
                    killed = True
            if process.waitForReadyRead(self.POLL_INTERVAL_MSECS):
                self._relay_lines(process)

        process.waitForFinished(-1)
        self._relay_lines(process, flush=True)

        crashed = process.exitStatus() != QProcess.ExitStatus.NormalExit
        exit_code = process.exitCode()
        log.debug(
            "'%s' finished with exit code %s (crashed: %s).",
            self._program,
            exit_code,
            crashed,
        )
        return ProcessResult(
            exit_code=exit_code,
            crashed=crashed,
            terminated=terminate_sent_at is not None,
        )

    def _relay_lines(self, process: QProcess, flush: bool = False) -> None:
        while process.canReadLine():
            self._emit_line(process.readLine().data())
        if flush:
            rest = process.readAll().data()
            if rest:
                self._emit_line(rest)

    def _emit_line(self, data: bytes) -> None:
        try:
            text = data.decode()
        except UnicodeDecodeError:
            log.warning(
                'Output of %s is not valid UTF-8: %r', self._program, data
            )
            text = data.decode(errors='replace')
        self.outputReady.emit(self.job_id, text.rstrip('\r\n'))

    @staticmethod
    def _end_process(process: QProcess) -> None:
        if os.name == 'nt':
            process.kill()
        else:
            process.terminate()

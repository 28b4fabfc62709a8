import os
import stat
import sys
from pathlib import Path

import pytest

# pytest-qt creates a QApplication, no display is needed for these tests
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

FAKE_BREW = """\
#!/bin/sh
echo "$*" >> "{calls}"
case "$1" in
  install)
    echo "Downloading..."
    if [ "$2" = "slow" ]; then
      trap 'kill $!; echo "Interrupted"; exit 0' TERM
      sleep 30 > /dev/null 2>&1 &
      wait $!
    fi
    echo "Installed"
    ;;
  search)
    echo "wget"
    exit 1
    ;;
  list)
    echo "git 2.40.0"
    echo "wget 1.21.4"
    ;;
  update)
    ;;
  env)
    echo "FOO=$FOO"
    ;;
  partial)
    printf 'no newline'
    ;;
  garbled)
    printf 'ok\\n\\377\\376bad\\nafter\\n'
    ;;
  fail)
    echo "Error: something went wrong"
    exit 1
    ;;
  sleep)
    exec sleep "$2"
    ;;
esac
exit 0
"""


class RecordingObserver:
    """Observer keeping every event it receives, in order."""

    def __init__(self):
        self.events = []

    def on_output(self, operation, output):
        self.events.append(('output', output))

    def on_finished(self, operation):
        self.events.append(('finished',))

    def on_failed(self, operation, error):
        self.events.append(('failed', error))

    @property
    def outputs(self):
        return [event[1] for event in self.events if event[0] == 'output']

    @property
    def terminal(self):
        return [event for event in self.events if event[0] != 'output']


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_observer():
    return RecordingObserver


@pytest.fixture
def brew_calls(tmp_path) -> Path:
    """File listing the arguments of every fake brew invocation."""
    return tmp_path / 'calls.log'


@pytest.fixture
def fake_brew(tmp_path, brew_calls) -> str:
    """Path to a shell script standing in for the brew executable."""
    if sys.platform == 'win32':
        pytest.skip('The fake brew executable is a POSIX shell script.')
    bin_dir = tmp_path / 'bin'
    bin_dir.mkdir()
    brew = bin_dir / 'brew'
    brew.write_text(FAKE_BREW.format(calls=brew_calls))
    brew.chmod(brew.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP)
    return str(brew)


@pytest.fixture
def read_calls(brew_calls):
    """Return a function listing the fake brew invocations so far."""

    def _read_calls() -> list[str]:
        if not brew_calls.exists():
            return []
        return brew_calls.read_text().splitlines()

    return _read_calls

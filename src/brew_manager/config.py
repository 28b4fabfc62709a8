import configparser
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from subprocess import run

DEFAULT_CONFIG_PATH = Path.home() / '.brew-manager'
DEFAULT_CONFIG_FILE_PATH = DEFAULT_CONFIG_PATH / 'brew-manager.ini'

DEFAULT_BREW_PATH = '/usr/local/bin/brew'
# Known install locations, in lookup order
BREW_PATH_CANDIDATES = (
    '/opt/homebrew/bin/brew',
    DEFAULT_BREW_PATH,
    '/home/linuxbrew/.linuxbrew/bin/brew',
)

# Homebrew serializes most work behind its own locks, so the bound does not
# follow the number of CPUs.
DEFAULT_MAX_CONCURRENT_OPERATIONS = 4


def default_brew_path() -> str:
    """Path of the first Homebrew executable found in a known location."""
    for path in BREW_PATH_CANDIDATES:
        if os.path.isfile(path):
            return path
    return DEFAULT_BREW_PATH


def brew_available(path: str | None = None) -> bool:
    """Check if Homebrew is available by asking for its version."""
    try:
        process = run(
            [path or default_brew_path(), '--version'], capture_output=True
        )
    except OSError:
        return False
    else:
        return process.returncode == 0


@dataclass
class BrewConfig:
    """Settings applied to operations when they are submitted.

    Parameters
    ----------
    brew_path : str
        Absolute path of the Homebrew executable.
    environment : dict, optional
        Environment for new processes. ``None`` inherits the environment of
        the current process, a dictionary replaces it entirely.
    concurrent : bool
        Run operations concurrently (default) or one at a time.
    max_concurrent_operations : int
        Maximum number of operations running at once in concurrent mode.
    """

    brew_path: str = field(default_factory=default_brew_path)
    environment: dict[str, str] | None = None
    concurrent: bool = True
    max_concurrent_operations: int = DEFAULT_MAX_CONCURRENT_OPERATIONS

    def __post_init__(self) -> None:
        if not self.brew_path:
            raise ValueError('Homebrew path cannot be empty!')
        if self.max_concurrent_operations < 1:
            raise ValueError(
                'At least one concurrent operation must be allowed, '
                f'got {self.max_concurrent_operations}!'
            )

    def snapshot(self) -> 'BrewConfig':
        """Independent copy, unaffected by later changes to this config."""
        environment = (
            None if self.environment is None else dict(self.environment)
        )
        return replace(self, environment=environment)


def get_configuration(path: Path | str | None = None) -> BrewConfig:
    """
    Get brew manager configuration.

    Reads the optional ``[brew]`` section of the configuration file:
        * `path` -> str
        * `concurrent` -> bool
        * `max_concurrent_operations` -> int

    Missing files or keys fall back to the defaults of `BrewConfig`.
    """
    path = Path(path) if path else DEFAULT_CONFIG_FILE_PATH
    config = configparser.ConfigParser()
    if path.exists():
        config.read(path)
    if not config.has_section('brew'):
        return BrewConfig()

    section = config['brew']
    return BrewConfig(
        brew_path=section.get('path', fallback=default_brew_path()),
        concurrent=section.getboolean('concurrent', fallback=True),
        max_concurrent_operations=section.getint(
            'max_concurrent_operations',
            fallback=DEFAULT_MAX_CONCURRENT_OPERATIONS,
        ),
    )

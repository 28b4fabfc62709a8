"""Queue and run Homebrew operations from Python and Qt applications."""

from brew_manager.brew_operation import BrewActions, BrewOperation, JobId
from brew_manager.config import BrewConfig, get_configuration
from brew_manager.observer import BrewError, BrewObserver
from brew_manager.qt_brew_queue import BrewQueue

__version__ = '0.1.0'

__all__ = [
    'BrewActions',
    'BrewConfig',
    'BrewError',
    'BrewObserver',
    'BrewOperation',
    'BrewQueue',
    'JobId',
    'get_configuration',
]

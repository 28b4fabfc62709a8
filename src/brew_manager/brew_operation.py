"""Homebrew operations understood by the brew queue.

A `BrewOperation` describes one invocation of the `brew` executable: the
sub-command (derived from its `BrewActions` member), optional parameters
and the formulae it applies to.
"""

from dataclasses import dataclass
from enum import StrEnum, auto

# Alias for int type to represent a job identifier in the brew queue
JobId = int


class BrewActions(StrEnum):
    "Available actions for brew operations"

    INSTALL = auto()
    UNINSTALL = auto()
    UPGRADE = auto()
    UPDATE = auto()
    LIST = auto()
    SEARCH = auto()
    OPTIONS = auto()
    CUSTOM = auto()


# Long-running actions whose output is relayed line by line. Every other
# action batches its output until the process has finished.
STREAMING_ACTIONS = frozenset({BrewActions.INSTALL, BrewActions.UPGRADE})


@dataclass(eq=False)
class BrewOperation:
    """A single requested invocation of Homebrew.

    Operations compare by identity. Use `is_equivalent` to compare the
    action and argument vector of two distinct objects.

    Parameters
    ----------
    action : BrewActions
        Type of the operation.
    formulae : tuple of str
        Formulae the operation applies to.
    parameters : tuple of str
        Extra command line flags, placed before the formulae.
    name : str, optional
        Sub-command for `BrewActions.CUSTOM` operations.
    installed : bool
        Set by the output parser after a successful list query.
    busy : bool
        True while the operation is queued or running.
    """

    action: BrewActions
    formulae: tuple[str, ...] = ()
    parameters: tuple[str, ...] = ()
    name: str | None = None
    installed: bool = False
    busy: bool = False

    def __post_init__(self) -> None:
        self.action = BrewActions(self.action)
        self.formulae = tuple(self.formulae)
        self.parameters = tuple(self.parameters)
        if self.action == BrewActions.CUSTOM and not self.name:
            raise ValueError('Custom operations need a command name!')

    @property
    def command(self) -> str:
        "Homebrew sub-command run by this operation"
        if self.action == BrewActions.CUSTOM:
            return self.name
        return self.action.value

    @property
    def streams_output(self) -> bool:
        return self.action in STREAMING_ACTIONS

    def arguments(self) -> list[str]:
        "Arguments supplied to the brew executable"
        return [self.command, *self.parameters, *self.formulae]

    def is_equivalent(self, other: 'BrewOperation') -> bool:
        """True if `other` runs the same action with the same arguments."""
        return (
            isinstance(other, BrewOperation)
            and self.action == other.action
            and self.arguments() == other.arguments()
        )

    # ------------------------- Factories --------------------------------
    @classmethod
    def install(cls, formula: str, *options: str) -> 'BrewOperation':
        return cls(BrewActions.INSTALL, (formula,), options)

    @classmethod
    def uninstall(cls, formula: str) -> 'BrewOperation':
        return cls(BrewActions.UNINSTALL, (formula,))

    @classmethod
    def upgrade(cls, *formulae: str) -> 'BrewOperation':
        "Upgrade `formulae`, or every outdated formula if none is given."
        return cls(BrewActions.UPGRADE, formulae)

    @classmethod
    def update(cls) -> 'BrewOperation':
        return cls(BrewActions.UPDATE)

    @classmethod
    def list_installed(cls) -> 'BrewOperation':
        return cls(BrewActions.LIST)

    @classmethod
    def search(cls, text: str) -> 'BrewOperation':
        return cls(BrewActions.SEARCH, (text,))

    @classmethod
    def options(cls, formula: str) -> 'BrewOperation':
        return cls(BrewActions.OPTIONS, (formula,))

    @classmethod
    def custom(cls, name: str, *parameters: str) -> 'BrewOperation':
        return cls(BrewActions.CUSTOM, parameters=parameters, name=name)

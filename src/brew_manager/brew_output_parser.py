"""
Parsing of the text Homebrew prints for `list`, `search` and `options`.

The parser is independent of the queue: feed it the output handed to an
observer's ``on_output`` together with the operation that produced it.
"""

import re
from dataclasses import dataclass
from enum import IntEnum

from brew_manager.brew_operation import BrewActions, BrewOperation

# formula names, optionally prefixed by a tap (user/repo/name)
_FORMULA_RE = re.compile(r'^[\w@+.\-]+(/[\w@+.\-]+){0,2}$')
_INSTALLED_MARK = '✔'


class ParserErrorKind(IntEnum):
    SYNTAX = 0
    UNSUPPORTED_OPERATION = 1


class BrewOutputParserError(ValueError):
    """Output that cannot be turned into objects."""

    def __init__(self, message: str, *, kind: ParserErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass
class BrewFormula:
    name: str
    installed: bool = False
    version: str | None = None


@dataclass
class BrewInstallOption:
    name: str
    description: str = ''


def objects_for_operation(
    operation: BrewOperation, output: str
) -> list[BrewFormula] | list[BrewInstallOption]:
    """Parse objects from the output of `operation`.

    Parameters
    ----------
    operation : BrewOperation
        The operation that generated the output. Only list, search and
        options operations are supported.
    output : str
        Output of the operation.

    Returns
    -------
    list
        `BrewFormula` objects for list and search operations,
        `BrewInstallOption` objects for options operations. Empty if
        there was no output. For list operations every formula, and the
        operation itself, is flagged as installed.

    Raises
    ------
    BrewOutputParserError
        If the operation type is unsupported or the output malformed.
    """
    parser = _PARSERS.get(operation.action)
    if parser is None:
        raise BrewOutputParserError(
            f"Parsing '{operation.command}' output is not supported!",
            kind=ParserErrorKind.UNSUPPORTED_OPERATION,
        )
    if not output.strip():
        return []
    return parser(operation, output)


def _check_name(name: str, line: str) -> str:
    if not _FORMULA_RE.match(name):
        raise BrewOutputParserError(
            f'Invalid formula name {name!r} in line {line!r}',
            kind=ParserErrorKind.SYNTAX,
        )
    return name


def _parse_list(operation: BrewOperation, output: str) -> list[BrewFormula]:
    formulae = []
    for line in output.splitlines():
        if not line.strip():
            continue
        name, *versions = line.split()
        formulae.append(
            BrewFormula(
                name=_check_name(name, line),
                installed=True,
                version=' '.join(versions) or None,
            )
        )
    operation.installed = True
    return formulae


def _parse_search(operation: BrewOperation, output: str) -> list[BrewFormula]:
    formulae = []
    for line in output.splitlines():
        # skip blank lines and section headers such as "==> Formulae"
        if not line.strip() or line.startswith('==>'):
            continue
        tokens = line.split()
        for i, token in enumerate(tokens):
            if token == _INSTALLED_MARK:
                continue
            installed = token.endswith(_INSTALLED_MARK) or (
                i + 1 < len(tokens) and tokens[i + 1] == _INSTALLED_MARK
            )
            name = token.removesuffix(_INSTALLED_MARK)
            formulae.append(
                BrewFormula(name=_check_name(name, line), installed=installed)
            )
    return formulae


def _parse_options(
    operation: BrewOperation, output: str
) -> list[BrewInstallOption]:
    options: list[BrewInstallOption] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith('--'):
            options.append(BrewInstallOption(name=line.strip()))
        elif line[0].isspace() and options:
            option = options[-1]
            description = line.strip()
            option.description = (
                f'{option.description} {description}'
                if option.description
                else description
            )
        else:
            raise BrewOutputParserError(
                f'Unexpected line {line!r} in options output',
                kind=ParserErrorKind.SYNTAX,
            )
    return options


_PARSERS = {
    BrewActions.LIST: _parse_list,
    BrewActions.SEARCH: _parse_search,
    BrewActions.OPTIONS: _parse_options,
}

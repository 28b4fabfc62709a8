import pytest

from brew_manager.brew_operation import BrewOperation
from brew_manager.brew_output_parser import (
    BrewFormula,
    BrewInstallOption,
    BrewOutputParserError,
    ParserErrorKind,
    objects_for_operation,
)


def test_list_output():
    operation = BrewOperation.list_installed()
    output = 'git 2.40.0\nwget 1.21.4 1.21.3\n\nopenssl@3\n'

    assert objects_for_operation(operation, output) == [
        BrewFormula('git', installed=True, version='2.40.0'),
        BrewFormula('wget', installed=True, version='1.21.4 1.21.3'),
        BrewFormula('openssl@3', installed=True),
    ]
    assert operation.installed


def test_search_output():
    output = (
        '==> Formulae\n'
        'wget ✔\n'
        'wget2\n'
        'homebrew/core/wgetpaste    gnu-wget\n'
        '\n'
        '==> Casks\n'
        'wgetx\n'
    )
    operation = BrewOperation.search('wget')

    assert objects_for_operation(operation, output) == [
        BrewFormula('wget', installed=True),
        BrewFormula('wget2'),
        BrewFormula('homebrew/core/wgetpaste'),
        BrewFormula('gnu-wget'),
        BrewFormula('wgetx'),
    ]
    assert not operation.installed


def test_options_output():
    output = (
        '--with-libressl\n'
        '\tBuild with libressl instead of openssl\n'
        '--HEAD\n'
        '\tInstall HEAD version\n'
        '\tfrom the main branch\n'
        '--without-idn\n'
    )

    assert objects_for_operation(BrewOperation.options('wget'), output) == [
        BrewInstallOption(
            '--with-libressl', 'Build with libressl instead of openssl'
        ),
        BrewInstallOption(
            '--HEAD', 'Install HEAD version from the main branch'
        ),
        BrewInstallOption('--without-idn'),
    ]


@pytest.mark.parametrize(
    'operation',
    [
        BrewOperation.list_installed(),
        BrewOperation.search('wget'),
        BrewOperation.options('wget'),
    ],
)
def test_empty_output(operation):
    assert objects_for_operation(operation, '') == []
    assert objects_for_operation(operation, '\n  \n') == []


@pytest.mark.parametrize(
    'operation',
    [
        BrewOperation.install('wget'),
        BrewOperation.update(),
        BrewOperation.custom('doctor'),
    ],
)
def test_unsupported_operation(operation):
    with pytest.raises(BrewOutputParserError, match='not supported') as exc:
        objects_for_operation(operation, 'wget')
    assert exc.value.kind == ParserErrorKind.UNSUPPORTED_OPERATION


@pytest.mark.parametrize(
    ('operation', 'output'),
    [
        (BrewOperation.list_installed(), 'Error: No such keg\n'),
        (BrewOperation.search('wget'), 'wget!\n'),
        (BrewOperation.options('wget'), '\tdescription first\n'),
        (BrewOperation.options('wget'), 'HEAD\n'),
    ],
)
def test_syntax_errors(operation, output):
    with pytest.raises(BrewOutputParserError) as exc:
        objects_for_operation(operation, output)
    assert exc.value.kind == ParserErrorKind.SYNTAX

from unittest.mock import patch

import pytest

from brew_manager import config
from brew_manager.config import BrewConfig


def test_config_file(tmp_path):
    TMP_DEFAULT_CONFIG_PATH = tmp_path / '.brew-manager'
    TMP_DEFAULT_CONFIG_FILE_PATH = TMP_DEFAULT_CONFIG_PATH / 'brew-manager.ini'

    with patch.object(
        config, 'DEFAULT_CONFIG_FILE_PATH', TMP_DEFAULT_CONFIG_FILE_PATH
    ):
        # no file yet, defaults
        initial_config = config.get_configuration()
        assert initial_config == BrewConfig()
        assert not TMP_DEFAULT_CONFIG_FILE_PATH.exists()

        TMP_DEFAULT_CONFIG_PATH.mkdir()
        TMP_DEFAULT_CONFIG_FILE_PATH.write_text(
            '[brew]\n'
            'path = /opt/homebrew/bin/brew\n'
            'concurrent = no\n'
            'max_concurrent_operations = 2\n'
        )
        second_config = config.get_configuration()
        assert second_config.brew_path == '/opt/homebrew/bin/brew'
        assert not second_config.concurrent
        assert second_config.max_concurrent_operations == 2
        assert second_config.environment is None


def test_config_file_without_brew_section(tmp_path):
    path = tmp_path / 'other.ini'
    path.write_text('[general]\nshow_disclaimer = True\n')
    assert config.get_configuration(path) == BrewConfig()


def test_config_file_from_str_path(tmp_path):
    path = tmp_path / 'brew-manager.ini'
    path.write_text('[brew]\nmax_concurrent_operations = 3\n')
    assert config.get_configuration(str(path)).max_concurrent_operations == 3


def test_invalid_config():
    with pytest.raises(ValueError, match='cannot be empty'):
        BrewConfig(brew_path='')
    with pytest.raises(ValueError, match='got 0'):
        BrewConfig(max_concurrent_operations=0)


def test_snapshot_is_independent():
    original = BrewConfig(environment={'FOO': 'bar'})
    snapshot = original.snapshot()
    original.environment['FOO'] = 'baz'
    original.concurrent = False

    assert snapshot.environment == {'FOO': 'bar'}
    assert snapshot.concurrent


def test_default_brew_path(tmp_path):
    brew = tmp_path / 'brew'
    brew.touch()
    with patch.object(
        config, 'BREW_PATH_CANDIDATES', (str(tmp_path / 'nope'), str(brew))
    ):
        assert config.default_brew_path() == str(brew)
    with patch.object(config, 'BREW_PATH_CANDIDATES', ()):
        assert config.default_brew_path() == config.DEFAULT_BREW_PATH


def test_brew_available(fake_brew, tmp_path):
    assert config.brew_available(fake_brew)
    assert not config.brew_available(str(tmp_path / 'not-a-real-brew'))

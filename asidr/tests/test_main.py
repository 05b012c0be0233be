import sys
from pathlib import Path

import pytest

from asidr.__main__ import (EXECUTABLES, EXECUTABLES_MAP, executable_module,
                            executable_name, main)
from asidr.utils.version import get_version

ROOT_PATH = Path(__file__).parent.parent.parent


@pytest.mark.parametrize('path', EXECUTABLES)
def test_executable_exists(path):
    assert (ROOT_PATH / path).exists()


def test_executables_have_main():
    for path in EXECUTABLES[1:]:
        source = (ROOT_PATH / path).read_text()
        assert "if __name__ == '__main__':" in source.replace('"', "'"), path


def test_executable_name():
    assert executable_name('asidr/resistance/interpret.py') == 'interpret'
    assert set(EXECUTABLES_MAP) == {'__main__',
                                    'interpret',
                                    'compare_algorithms',
                                    'version'}


def test_executable_module():
    assert (executable_module('asidr/resistance/interpret.py') ==
            'asidr.resistance.interpret')


def test_help(capsys):
    assert main(['--help']) == 0
    assert 'Run an ASIDR tool.' in capsys.readouterr().out


def test_no_program(capsys):
    assert main([]) == 1
    assert 'usage:' in capsys.readouterr().out


def test_version(capsys, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['asidr'])

    with pytest.raises(SystemExit) as exc_info:
        main(['--version'])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out.strip() == get_version()


def test_run_program(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['asidr'])
    mutations_path = tmp_path / 'mutations.csv'
    resistance_path = tmp_path / 'resistance.csv'
    comments_path = tmp_path / 'comments.csv'
    mutations_path.write_text('sample,mutations\nE1234,RT:M184V\n')

    with pytest.raises(SystemExit) as exc_info:
        main(['interpret',
              str(mutations_path),
              str(resistance_path),
              str(comments_path)])

    assert exc_info.value.code == 0
    assert resistance_path.read_text().startswith('sample,gene,drug_class,')

import json

import pytest

from kvstore_lib import cli


@pytest.fixture
def store_args(tmp_path, monkeypatch):
    """Common CLI arguments pointing at a throwaway sqlite file and no config."""
    monkeypatch.setattr(cli, 'configure_logging', lambda *a, **k: None)
    settings = json.dumps({'filename': str(tmp_path / 'kv.sqlite')})
    return ['--config', str(tmp_path / 'missing.yml'), '--type', 'sqlite', '--settings', settings]


def test_cli_set_get_find_remove(store_args, capsys):
    assert cli.main(store_args + ['set', 'user:1', '{"name": "ada"}']) == 0
    assert cli.main(store_args + ['set', 'user:2', 'plain text']) == 0
    capsys.readouterr()

    assert cli.main(store_args + ['get', 'user:1']) == 0
    assert json.loads(capsys.readouterr().out) == {'name': 'ada'}

    assert cli.main(store_args + ['get', 'user:2']) == 0
    assert json.loads(capsys.readouterr().out) == 'plain text'

    assert cli.main(store_args + ['find', 'user:*', '--not', 'user:2']) == 0
    assert json.loads(capsys.readouterr().out) == ['user:1']

    assert cli.main(store_args + ['remove', 'user:1']) == 0
    assert cli.main(store_args + ['get', 'user:1']) == 0
    assert capsys.readouterr().out == ''


def test_cli_sub_values(store_args, capsys):
    assert cli.main(store_args + ['set-sub', 'cfg', 'ui', 'theme', '--value', '"dark"']) == 0
    assert cli.main(store_args + ['get-sub', 'cfg', 'ui', 'theme']) == 0
    assert json.loads(capsys.readouterr().out) == 'dark'
    assert cli.main(store_args + ['get', 'cfg']) == 0
    assert json.loads(capsys.readouterr().out) == {'ui': {'theme': 'dark'}}


def test_cli_lists_backends(capsys, monkeypatch):
    monkeypatch.setattr(cli, 'configure_logging', lambda *a, **k: None)
    assert cli.main(['backends']) == 0
    backends = json.loads(capsys.readouterr().out)
    assert 'sqlite' in backends and 'redis' in backends


def test_cli_reports_invalid_type(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(cli, 'configure_logging', lambda *a, **k: None)
    code = cli.main(['--config', str(tmp_path / 'missing.yml'), '--type', 'nosuchdb', 'get', 'k'])
    assert code == 1
    assert 'Invalid database type' in capsys.readouterr().err


def test_cli_usage_error_exits_with_2(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(['frobnicate'])
    assert exc.value.code == 2


def test_parse_value():
    assert cli.parse_value('{"a": 1}') == {'a': 1}
    assert cli.parse_value('42') == 42
    assert cli.parse_value('not json') == 'not json'

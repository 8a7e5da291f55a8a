import os

import pytest
import yaml
from click.testing import CliRunner
from stackup.CLI.main import cli

HERE = os.path.dirname(os.path.abspath(__file__))


@pytest.fixture
def events(monkeypatch):
    monkeypatch.syspath_prepend(HERE)
    import stack_services
    stack_services.EVENTS.clear()
    return stack_services.EVENTS


def write_stack(tmp_path, services):
    stack_file = tmp_path / "stack.yml"
    with open(stack_file, 'w') as f:
        yaml.dump({'services': services}, f, sort_keys=False)
    return str(stack_file)


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Start services' in result.output


def test_cli_up_no_file():
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', 'non_existent.yml', 'up'])
    assert result.exit_code == 1
    assert 'Error: non_existent.yml not found.' in result.output


def test_cli_order(tmp_path):
    stack = write_stack(tmp_path, {
        'web': {'factory': 'types.SimpleNamespace', 'depends_on': ['cache', 'db']},
        'cache': {'factory': 'types.SimpleNamespace', 'depends_on': ['db']},
        'db': {'factory': 'types.SimpleNamespace'},
    })
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', stack, 'order'])
    assert result.exit_code == 0
    assert result.output.split() == ['db', 'cache', 'web']

    result = runner.invoke(cli, ['-f', stack, 'order', '--reverse'])
    assert result.output.split() == ['web', 'cache', 'db']


def test_cli_check_cycle(tmp_path):
    stack = write_stack(tmp_path, {
        'a': {'factory': 'types.SimpleNamespace', 'depends_on': ['b']},
        'b': {'factory': 'types.SimpleNamespace', 'depends_on': ['a']},
    })
    result = CliRunner().invoke(cli, ['-f', stack, 'check'])
    assert result.exit_code == 1
    assert 'Circular dependency detected: a -> b -> a' in result.output


def test_cli_check_ok(tmp_path):
    stack = write_stack(tmp_path, {'a': {'factory': 'types.SimpleNamespace'}})
    result = CliRunner().invoke(cli, ['-f', stack, 'check'])
    assert result.exit_code == 0
    assert 'OK (1 services)' in result.output


def test_cli_up_once(tmp_path, events):
    env_file = tmp_path / ".env"
    env_file.write_text("WEB_PORT=9000\n")
    stack_file = tmp_path / "stack.yml"
    stack_file.write_text("""
services:
  web:
    factory: stack_services.WebServer
    kwargs:
      port: ${WEB_PORT}
    depends_on: [db]
  db:
    factory: stack_services.Database
""")
    result = CliRunner().invoke(cli, ['-f', str(stack_file), '--env-file', str(env_file), 'up', '--once'])
    assert result.exit_code == 0, result.output
    assert 'Services started.' in result.output
    assert 'Services stopped.' in result.output
    assert events == ['db.init', 'db.start', 'web.start:9000', 'web.stop', 'db.stop']


def test_cli_up_failure(tmp_path, events):
    stack = write_stack(tmp_path, {
        'db': {'factory': 'stack_services.Database'},
        'api': {'factory': 'stack_services.Broken', 'depends_on': 'db'},
    })
    result = CliRunner().invoke(cli, ['-f', stack, 'up', '--once'])
    assert result.exit_code == 1
    assert "Error: Service 'api' failed to start" in result.output
    assert events == ['db.init', 'db.start']

import os

import click
import pytest

from agepad.inject import EnvInjectionRequest, EnvInjector, merge_environment, parse_env, parse_run_arguments
from agepad.utils import AgepadException, DecryptError


def test_merge_environment():
    text = "A=1\n#comment\nB=two words\n=badline\nNOEQUALS\n"
    assert merge_environment(text, {"A": "0", "C": "x"}) == {"A": "1", "B": "two words", "C": "x"}


def test_parse_env():
    text = "  KEY = value with spaces\nURL=postgres://u:p@h/db?x=1\n\n# B=2\n"
    assert parse_env(text) == {"KEY": " value with spaces", "URL": "postgres://u:p@h/db?x=1"}


def test_merge_leaves_inherited_environment_alone():
    inherited = {"A": "0"}
    merge_environment("A=1\n", inherited)
    assert inherited == {"A": "0"}


@pytest.mark.parametrize('tokens, expected', [
    (['--', 'app.env.age', '--', 'env'], ('app.env.age', ('env',))),
    (['--', 'app.env.age', '--', 'server', '--port', '8080'], ('app.env.age', ('server', '--port', '8080'))),
    (['--', 'app.env.age', '--', 'sh', '-c', 'a -- b'], ('app.env.age', ('sh', '-c', 'a -- b'))),
    (['--', 'app.env.age', '--', 'echo', '--'], ('app.env.age', ('echo', '--'))),
])
def test_parse_run_arguments(tokens, expected):
    assert parse_run_arguments(tokens) == expected


@pytest.mark.parametrize('tokens', [
    [],
    ['app.env.age', 'env'],
    ['--', 'app.env.age', 'env'],
    ['--', 'app.env.age', '--'],
    ['--', '--', 'env'],
    ['--', 'a.age', 'b.age', '--', 'env'],
])
def test_parse_run_arguments_usage(tokens):
    with pytest.raises(click.UsageError):
        parse_run_arguments(tokens)


def test_request_needs_command(alice, tmp_path):
    with pytest.raises(ValueError):
        EnvInjectionRequest(path=tmp_path / 'app.env.age', identities=[alice.identity], command=[])


@pytest.fixture()
def request_for(tmp_path, encrypt, alice):
    def request_func(*command: str) -> EnvInjectionRequest:
        path = encrypt(tmp_path / 'app.env.age', "SECRET=hunter2\n")
        return EnvInjectionRequest(path=path, identities=[alice.identity], command=command)

    return request_func


def test_exec(request_for, monkeypatch):
    calls = []
    monkeypatch.setenv('INHERITED', 'yes')
    monkeypatch.setattr(os, 'execve', lambda *args: calls.append(args))

    EnvInjector().exec(request_for('env', '-0'))

    [(program, argv, environment)] = calls
    assert os.path.basename(program) == 'env'
    assert argv == ['env', '-0']
    assert environment['SECRET'] == 'hunter2'
    assert environment['INHERITED'] == 'yes'


def test_exec_unknown_command(request_for, monkeypatch):
    monkeypatch.setattr(os, 'execve', pytest.fail)
    with pytest.raises(AgepadException, match="Command not found"):
        EnvInjector().exec(request_for('agepad-no-such-command'))


def test_exec_wrong_identity(request_for, bob, monkeypatch):
    monkeypatch.setattr(os, 'execve', pytest.fail)
    request = request_for('env')
    with pytest.raises(DecryptError):
        EnvInjector().exec(EnvInjectionRequest(
            path=request.path, identities=[bob.identity], command=request.command))

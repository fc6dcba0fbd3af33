import functools

import click.testing
import pytest

from replicaop.cli import main


@pytest.fixture()
def runner():
    return click.testing.CliRunner()


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('replicaop._core.reactor.running.run')


@pytest.fixture()
def real_reconcile(mocker):
    return mocker.patch('replicaop._core.reactor.running.reconcile_once')

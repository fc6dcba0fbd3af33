import asyncio
import logging

import pytest

from replicaop._cogs.structs.credentials import ConnectionInfo, Vault
from replicaop._cogs.structs.references import CUSTOMOPERATORS, DEPLOYMENTS
from replicaop._core.reactor import queueing, running
from replicaop._core.reactor.running import operator


@pytest.fixture()
def watcher(mocker):
    async def fake_watcher(**kwargs):
        await asyncio.Event().wait()
    return mocker.patch.object(queueing, 'watcher', side_effect=fake_watcher)


@pytest.fixture()
async def stop_flag():
    stop_flag = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop_flag.set)
    return stop_flag


@pytest.fixture()
def vault():
    return Vault(ConnectionInfo(server='https://localhost'))


def _watched(watcher):
    return sorted(
        ((c.kwargs['resource'].plural, c.kwargs['namespace'], c.kwargs['mapper'].__name__)
         for c in watcher.call_args_list),
        key=repr,
    )


async def test_watching_in_namespaces(watcher, stop_flag, vault):
    await operator(namespaces=['ns1', 'ns2'], stop_flag=stop_flag, vault=vault)
    assert _watched(watcher) == sorted([
        (CUSTOMOPERATORS.plural, 'ns1', 'keys_of_instances'),
        (DEPLOYMENTS.plural, 'ns1', 'keys_of_owners'),
        (CUSTOMOPERATORS.plural, 'ns2', 'keys_of_instances'),
        (DEPLOYMENTS.plural, 'ns2', 'keys_of_owners'),
    ], key=repr)


async def test_watching_clusterwide(watcher, stop_flag, vault):
    await operator(clusterwide=True, stop_flag=stop_flag, vault=vault)
    assert _watched(watcher) == sorted([
        (CUSTOMOPERATORS.plural, None, 'keys_of_instances'),
        (DEPLOYMENTS.plural, None, 'keys_of_owners'),
    ], key=repr)


async def test_clusterwide_is_assumed_with_a_warning(watcher, stop_flag, vault, caplog):
    caplog.set_level(logging.WARNING)
    await operator(stop_flag=stop_flag, vault=vault)
    assert {c.kwargs['namespace'] for c in watcher.call_args_list} == {None}
    assert "No namespaces are specified" in caplog.text


async def test_namespaces_and_clusterwide_are_mutually_exclusive(watcher, vault):
    with pytest.raises(ValueError, match=r"not both"):
        await operator(namespaces=['ns'], clusterwide=True, vault=vault)
    assert not watcher.called


async def test_ready_flag_is_set(watcher, stop_flag, vault):
    ready_flag = asyncio.Event()
    await operator(clusterwide=True, stop_flag=stop_flag, ready_flag=ready_flag, vault=vault)
    assert ready_flag.is_set()


async def test_vault_is_closed(watcher, stop_flag, vault, mocker):
    close = mocker.spy(vault, 'close')
    await operator(clusterwide=True, stop_flag=stop_flag, vault=vault)
    assert close.called


async def test_watching_errors_are_escalated(mocker, vault, caplog):
    caplog.set_level(logging.ERROR)
    error = RuntimeError('boo!')
    mocker.patch.object(queueing, 'watcher', side_effect=error)

    with pytest.raises(RuntimeError) as e:
        await operator(clusterwide=True, vault=vault)

    assert e.value is error
    assert "has failed" in caplog.text


async def test_liveness_endpoint_is_served(watcher, stop_flag, vault, mocker):
    async def fake_reporter(**kwargs):
        await asyncio.Event().wait()
    reporter = mocker.patch.object(running.probing, 'health_reporter', side_effect=fake_reporter)

    await operator(clusterwide=True, stop_flag=stop_flag, vault=vault,
                   liveness_endpoint='http://:8080/healthz')

    assert reporter.call_count == 1
    assert reporter.call_args.kwargs == {'endpoint': 'http://:8080/healthz'}


async def test_no_liveness_endpoint_by_default(watcher, stop_flag, vault, mocker):
    reporter = mocker.patch.object(running.probing, 'health_reporter')
    await operator(clusterwide=True, stop_flag=stop_flag, vault=vault)
    assert not reporter.called


async def test_login_is_done_without_a_vault(watcher, stop_flag, mocker):
    login = mocker.patch.object(running.piggybacking, 'login',
                                return_value=ConnectionInfo(server='https://localhost'))
    await operator(clusterwide=True, stop_flag=stop_flag)
    assert login.called


def test_sync_run_suppresses_cancellations(mocker):
    operator = mocker.patch.object(running, 'operator', side_effect=asyncio.CancelledError)
    running.run(clusterwide=True)
    assert operator.call_args.kwargs['clusterwide'] is True

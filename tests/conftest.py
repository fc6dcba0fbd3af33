import copy
import json
import logging
import time
from collections.abc import Mapping
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp.web
import pytest
from aresponses.main import ResponsesMockServer

from replicaop._cogs.clients import auth
from replicaop._cogs.clients.errors import APIAlreadyExistsError, APIConflictError, \
                                           APINotFoundError
from replicaop._cogs.configs.configuration import OperatorSettings
from replicaop._cogs.structs.credentials import ConnectionInfo, Vault
from replicaop._cogs.structs.references import CUSTOMOPERATORS, DEPLOYMENTS, ObjectKey, Resource


#
# Settings.
#

@pytest.fixture()
def settings():
    return OperatorSettings()


#
# Mocks for the K8s API. No external calls must be made under any circumstances:
# all the requests go to the local `aresponses` server, whatever the hostname is.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
async def aresponses():
    """ The `aresponses` server, started in the event loop of the test. """
    async with ResponsesMockServer() as server:
        yield server


# Note: Unused `vault` is to ensure that the client wrappers have the credentials.
@pytest.fixture()
def resp_mocker(vault, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which returns a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effect).

    Unlike the responses passed directly to `aresponses.add`, it is possible
    to assert on whether the response was handled by that callback at all
    (i.e. HTTP URL & method matched), and with which request.

    Sample usage::

        def test_me(resp_mocker, aresponses, hostname):
            callback = resp_mocker(return_value=aiohttp.web.json_response({'a': 'b'}))
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.call_count == 1
            assert callback.call_args_list[0][0][0].data == {...}
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)

        async def resp_mock_effect(request):
            # The request's content can be read inside of the handler only. We preserve
            # the data into a conventional field, so that they could be asserted later.
            try:
                request.data = await request.json()
            except json.JSONDecodeError:
                request.data = await request.text()
            return actual_response()

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


@pytest.fixture()
def status_response():
    """ A factory of K8s `Status` failures, as the API server returns them. """
    def make_status_response(status, reason='Boo', message=None):
        return aiohttp.web.json_response({
            'apiVersion': 'v1',
            'kind': 'Status',
            'status': 'Failure',
            'code': status,
            'reason': reason,
            'message': message if message is not None else f'{reason} happened',
        }, status=status)
    return make_status_response


@pytest.fixture()
def stream_response():
    """ A factory of pre-rendered watch-streams (for simplicity, no actual streaming). """
    def make_stream_response(events):
        return aiohttp.web.Response(text=''.join(json.dumps(event) + '\n' for event in events))
    return make_stream_response


# The context variable must be set in a sync fixture, so that it is seen in the tests.
@pytest.fixture()
def vault_var_set(hostname):
    vault = Vault(ConnectionInfo(server=f'https://{hostname}', token='fake-token'))
    token = auth.vault_var.set(vault)
    try:
        yield vault
    finally:
        auth.vault_var.reset(token)


@pytest.fixture()
async def vault(vault_var_set):
    try:
        yield vault_var_set
    finally:
        await vault_var_set.close()


@pytest.fixture()
def resource():
    """ The resource used in the API tests. It is not the real one to not couple them. """
    return Resource('example.com', 'v1', 'widgets', kind='Widget',
                    namespaced=True, subresources=frozenset({'status'}))


#
# An in-memory cluster state, as seen by the reconciliation.
#

class MemoryAccessor:
    """
    A cluster accessor with the objects stored in memory, which records all the calls.

    The failures can be injected per operation & resource, they are raised
    instead of performing the operation (but the call is recorded).
    """

    def __init__(self) -> None:
        super().__init__()
        self.objects: dict[tuple[Resource, ObjectKey], dict[str, Any]] = {}
        self.calls: list[tuple[str, Resource, Any]] = []
        self.failures: dict[tuple[str, Resource], BaseException] = {}
        self._counter = 0

    @property
    def mutations(self) -> list[tuple[str, Resource, Any]]:
        return [call for call in self.calls if call[0] != 'get']

    def store(self, resource: Resource, body: Mapping[str, Any]) -> dict[str, Any]:
        self._counter += 1
        stored = copy.deepcopy(dict(body))
        meta = stored.setdefault('metadata', {})
        meta.setdefault('uid', f'uid-{self._counter}')
        meta['resourceVersion'] = str(self._counter)
        key = ObjectKey(meta.get('namespace', ''), meta['name'])
        self.objects[resource, key] = stored
        return copy.deepcopy(stored)

    def peek(self, resource: Resource, namespace: str, name: str) -> dict[str, Any] | None:
        return self.objects.get((resource, ObjectKey(namespace, name)))

    def _maybe_fail(self, op: str, resource: Resource) -> None:
        if (op, resource) in self.failures:
            raise self.failures[op, resource]

    async def get(self, resource, key, *, logger):
        self.calls.append(('get', resource, key))
        self._maybe_fail('get', resource)
        if (resource, key) not in self.objects:
            raise APINotFoundError(None, status=404)
        return copy.deepcopy(self.objects[resource, key])

    async def create(self, resource, body, *, logger):
        self.calls.append(('create', resource, copy.deepcopy(body)))
        self._maybe_fail('create', resource)
        key = ObjectKey(body['metadata']['namespace'], body['metadata']['name'])
        if (resource, key) in self.objects:
            raise APIAlreadyExistsError(None, status=409)
        return self.store(resource, body)

    async def update(self, resource, body, *, logger):
        self.calls.append(('update', resource, copy.deepcopy(body)))
        self._maybe_fail('update', resource)
        key = ObjectKey(body['metadata']['namespace'], body['metadata']['name'])
        if (resource, key) not in self.objects:
            raise APINotFoundError(None, status=404)
        current = self.objects[resource, key]
        if body['metadata'].get('resourceVersion') != current['metadata']['resourceVersion']:
            raise APIConflictError(None, status=409)
        return self.store(resource, body)

    async def patch_status(self, resource, key, status, *, logger):
        self.calls.append(('patch_status', resource, (key, dict(status))))
        self._maybe_fail('patch_status', resource)
        if (resource, key) not in self.objects:
            return None
        stored = self.objects[resource, key]
        stored.setdefault('status', {}).update(status)
        return copy.deepcopy(stored)


@pytest.fixture()
def accessor():
    return MemoryAccessor()


@pytest.fixture()
def make_instance(accessor):
    def make_instance(namespace='team-a', name='svc', replicas=3, **spec):
        return accessor.store(CUSTOMOPERATORS, {
            'apiVersion': CUSTOMOPERATORS.api_version,
            'kind': CUSTOMOPERATORS.kind,
            'metadata': {'namespace': namespace, 'name': name},
            'spec': dict(spec, replicas=replicas),
        })
    return make_instance


@pytest.fixture()
def make_child(accessor):
    def make_child(namespace='team-a', name='svc-deployment', replicas=3, owner=None, **extra):
        refs = [] if owner is None else [{
            'apiVersion': owner['apiVersion'],
            'kind': owner['kind'],
            'name': owner['metadata']['name'],
            'uid': owner['metadata']['uid'],
            'controller': True,
            'blockOwnerDeletion': True,
        }]
        return accessor.store(DEPLOYMENTS, dict({
            'apiVersion': DEPLOYMENTS.api_version,
            'kind': DEPLOYMENTS.kind,
            'metadata': {'namespace': namespace, 'name': name, 'ownerReferences': refs},
            'spec': {'replicas': replicas},
        }, **extra))
    return make_child


@pytest.fixture(autouse=True)
def _reset_logging():
    """ Remove our stream handlers after the tests that configure the logging. """
    loggers = [logging.getLogger(name) for name in ['', 'asyncio', 'aiohttp.access']]
    states = [(logger.handlers[:], logger.level, logger.propagate) for logger in loggers]
    try:
        yield
    finally:
        for logger, (handlers, level, propagate) in zip(loggers, states):
            logger.handlers[:] = handlers
            logger.setLevel(level)
            logger.propagate = propagate


@pytest.fixture()
def timer():
    return Timer()


class Timer:
    """
    A helper context manager to measure the time of the code-blocks.

    Usage::

        with timer:
            await do_something()
        assert timer.seconds < 5.0
    """

    def __init__(self) -> None:
        super().__init__()
        self._ts: float | None = None
        self._te: float | None = None

    @property
    def seconds(self) -> float | None:
        if self._ts is None:
            return None
        elif self._te is None:
            return time.perf_counter() - self._ts
        else:
            return self._te - self._ts

    def __enter__(self) -> 'Timer':
        self._ts = time.perf_counter()
        self._te = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._te = time.perf_counter()

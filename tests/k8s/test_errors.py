import aiohttp.web
import pytest

from replicaop._cogs.clients.api import get, request
from replicaop._cogs.clients.errors import APIAlreadyExistsError, APIClientError, \
                                           APIConflictError, APIError, APIForbiddenError, \
                                           APINotFoundError, APIServerError, \
                                           APIUnauthorizedError


def test_hierarchy():
    assert issubclass(APIClientError, APIError)
    assert issubclass(APIServerError, APIError)
    assert issubclass(APIUnauthorizedError, APIClientError)
    assert issubclass(APIForbiddenError, APIClientError)
    assert issubclass(APINotFoundError, APIClientError)
    assert issubclass(APIConflictError, APIClientError)
    assert issubclass(APIAlreadyExistsError, APIConflictError)
    assert not issubclass(APIError, aiohttp.ClientError)


def test_fields_of_payload():
    error = APIError({
        'apiVersion': 'v1', 'kind': 'Status', 'status': 'Failure',
        'code': 404, 'reason': 'NotFound', 'message': 'boo', 'details': {'name': 'x'},
    }, status=404)
    assert error.status == 404
    assert error.code == 404
    assert error.reason == 'NotFound'
    assert error.message == 'boo'
    assert error.details == {'name': 'x'}


def test_fields_without_payload():
    error = APIError(None, status=500)
    assert error.status == 500
    assert error.code is None
    assert error.reason is None
    assert error.message is None
    assert error.details is None


@pytest.mark.parametrize('status, reason, exctype', [
    (400, 'BadRequest', APIClientError),
    (401, 'Unauthorized', APIUnauthorizedError),
    (403, 'Forbidden', APIForbiddenError),
    (404, 'NotFound', APINotFoundError),
    (409, 'Conflict', APIConflictError),
    (409, 'AlreadyExists', APIAlreadyExistsError),
    (422, 'Invalid', APIClientError),
    (500, 'InternalError', APIServerError),
    (503, 'ServiceUnavailable', APIServerError),
])
async def test_errors_by_status(
        resp_mocker, aresponses, hostname, status_response, settings, logger,
        status, reason, exctype):

    get_mock = resp_mocker(return_value=status_response(status, reason=reason, message='boo!'))
    aresponses.add(hostname, '/url', 'get', get_mock)

    with pytest.raises(exctype) as e:
        await get('/url', settings=settings, logger=logger)

    assert type(e.value) is exctype
    assert e.value.status == status
    assert e.value.code == status
    assert e.value.reason == reason
    assert e.value.message == 'boo!'
    assert isinstance(e.value.__cause__, aiohttp.ClientResponseError)


async def test_non_status_payloads_are_not_exposed(
        resp_mocker, aresponses, hostname, settings, logger):

    secret = {'kind': 'Secret', 'data': {'password': 'x'}}
    get_mock = resp_mocker(return_value=aiohttp.web.json_response(secret, status=404))
    aresponses.add(hostname, '/url', 'get', get_mock)

    with pytest.raises(APINotFoundError) as e:
        await get('/url', settings=settings, logger=logger)

    assert e.value.status == 404
    assert e.value.message is None
    assert e.value.details is None


async def test_non_json_payloads_are_tolerated(
        resp_mocker, aresponses, hostname, settings, logger):

    get_mock = resp_mocker(return_value=aresponses.Response(status=500, text='Internal error'))
    aresponses.add(hostname, '/url', 'get', get_mock)

    with pytest.raises(APIServerError) as e:
        await get('/url', settings=settings, logger=logger)

    assert e.value.status == 500
    assert e.value.message is None


async def test_successful_response_is_not_read(
        resp_mocker, aresponses, hostname, settings, logger):

    get_mock = resp_mocker(return_value=aiohttp.web.json_response({'a': 'b'}))
    aresponses.add(hostname, '/url', 'get', get_mock)

    response = await request('get', '/url', settings=settings, logger=logger)
    async with response:
        assert response.status == 200
        assert await response.json() == {'a': 'b'}

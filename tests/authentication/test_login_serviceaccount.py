import pytest

from replicaop._core.intents import piggybacking
from replicaop._core.intents.piggybacking import login_with_service_account


@pytest.fixture()
def sa_path(tmp_path, mocker):
    mocker.patch.object(piggybacking, 'SERVICE_ACCOUNT_PATH', str(tmp_path))
    return tmp_path


def test_serviceaccount_with_all_absent_files(sa_path, logger):
    credentials = login_with_service_account(logger=logger)
    assert credentials is None


def test_serviceaccount_with_all_present_files(sa_path, logger):
    (sa_path / 'token').write_text(' tkn \n')
    (sa_path / 'namespace').write_text(' ns \n')
    (sa_path / 'ca.crt').write_text('...')
    credentials = login_with_service_account(logger=logger)
    assert credentials is not None
    assert credentials.server == 'https://kubernetes.default.svc'
    assert credentials.default_namespace == 'ns'
    assert credentials.token == 'tkn'
    assert credentials.ca_path == str(sa_path / 'ca.crt')
    assert credentials.priority == piggybacking.PRIORITY_OF_SERVICE_ACCOUNT


def test_serviceaccount_with_only_the_token(sa_path, logger):
    (sa_path / 'token').write_text('tkn')
    credentials = login_with_service_account(logger=logger)
    assert credentials is not None
    assert credentials.token == 'tkn'
    assert credentials.default_namespace is None
    assert credentials.ca_path is None


def test_serviceaccount_with_an_empty_token(sa_path, logger):
    (sa_path / 'token').write_text('')
    credentials = login_with_service_account(logger=logger)
    assert credentials is not None
    assert credentials.token is None

import logging

import pytest


@pytest.fixture(autouse=True)
def _autouse_vault(vault):
    pass


@pytest.fixture()
def logger():
    return logging.getLogger('tests.k8s')

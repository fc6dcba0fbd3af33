import logging

import pytest

from replicaop._cogs.structs.bodies import build_stub
from replicaop._cogs.structs.references import CUSTOMOPERATORS, ObjectKey
from replicaop._core.actions.loggers import ObjectLogger


@pytest.fixture(autouse=True)
def _caplog_all_levels(caplog):
    caplog.set_level(0)


@pytest.mark.parametrize('method, levelno', [
    ('debug', logging.DEBUG),
    ('info', logging.INFO),
    ('warning', logging.WARNING),
    ('error', logging.ERROR),
    ('critical', logging.CRITICAL),
])
def test_messages_carry_the_object_reference(caplog, method, levelno):
    body = {
        'apiVersion': 'replica.example.com/v1alpha1',
        'kind': 'CustomOperator',
        'metadata': {'namespace': 'ns', 'name': 'svc', 'uid': 'uid1'},
    }
    logger = ObjectLogger(body=body)

    getattr(logger, method)("hello %s", 'world')

    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.name == 'replicaop.objects'
    assert record.levelno == levelno
    assert record.getMessage() == "hello world"
    assert record.k8s_ref == {
        'apiVersion': 'replica.example.com/v1alpha1',
        'kind': 'CustomOperator',
        'namespace': 'ns',
        'name': 'svc',
        'uid': 'uid1',
    }


def test_stubs_have_no_uids(caplog):
    logger = ObjectLogger(body=build_stub(CUSTOMOPERATORS, ObjectKey('ns', 'svc')))
    logger.info("hello")
    assert caplog.records[0].k8s_ref['uid'] is None
    assert caplog.records[0].k8s_ref['kind'] == 'CustomOperator'
    assert caplog.records[0].k8s_ref['name'] == 'svc'


def test_extras_are_merged(caplog):
    logger = ObjectLogger(body={'metadata': {'name': 'svc'}})
    logger.info("hello", extra={'custom': 'value'})
    assert caplog.records[0].custom == 'value'
    assert caplog.records[0].k8s_ref['name'] == 'svc'

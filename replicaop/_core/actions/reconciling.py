"""
The reconciliation of a single custom resource with its child deployment.

Every reconciliation starts from scratch: it re-reads the custom resource
and its child by their keys, and decides what to do based on what it sees
right now. Nothing is remembered between the reconciliations, so they can be
repeated, interrupted, and retried at any point with no harm.

At most one mutation of the child is done per reconciliation:

* If the custom resource is gone, nothing is done (the child, if any,
  is garbage-collected by K8s via its owner reference).
* If the child is absent, it is created, and the reconciliation is requeued
  to verify the result as seen by the cluster.
* If the child's replicas differ from the desired ones, they are updated.
* Otherwise, nothing is done.

The other fields of the child (labels, selectors, the pod template)
are set only on creation and are never corrected afterwards.

No errors are retried here: they are all escalated to the caller
(usually, the dispatcher), which decides when to retry.
"""
import copy
import dataclasses
import enum
from collections.abc import Mapping
from typing import Any

from replicaop._cogs.clients import accessors, errors
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references
from replicaop._core.actions import loggers, resolving
from replicaop._kits import hierarchies


@dataclasses.dataclass(frozen=True)
class Outcome:
    """
    The result of one reconciliation, as understood by the dispatcher.

    If ``requeue`` is not set, the key is considered reconciled, and nothing
    happens until the next trigger. Otherwise, it is reconciled again,
    either immediately (without ``delay``) or after the ``delay`` seconds.
    The errors are not outcomes: they are raised.
    """
    requeue: bool = False
    delay: float | None = None


DONE = Outcome()
REQUEUE = Outcome(requeue=True)


class Condition(str, enum.Enum):
    """ What was done to the child in the latest reconciliation. """
    CREATED = 'Created'
    SCALED = 'Scaled'
    SYNCED = 'Synced'


async def reconcile(
        key: references.ObjectKey,
        *,
        accessor: accessors.ClusterAccessor,
        settings: configuration.OperatorSettings,
) -> Outcome:
    kind = references.CUSTOMOPERATORS.kind
    logger: typedefs.Logger
    logger = loggers.ObjectLogger(body=bodies.build_stub(references.CUSTOMOPERATORS, key))

    # Step 1: the custom resource.
    try:
        instance = await accessor.get(references.CUSTOMOPERATORS, key, logger=logger)
    except errors.APINotFoundError:
        logger.info(f"{kind} {key} is not found; nothing to reconcile.")
        return DONE
    except Exception as e:
        logger.error(f"Failed to read {kind} {key}: {e!r}")
        raise
    logger = loggers.ObjectLogger(body=instance)

    # Step 2: the child.
    child: bodies.RawBody | None
    child_kind = references.DEPLOYMENTS.kind
    child_key = resolving.child_key(instance, settings=settings.children)
    try:
        child = await accessor.get(references.DEPLOYMENTS, child_key, logger=logger)
    except errors.APINotFoundError:
        child = None
    except Exception as e:
        logger.error(f"Failed to read {child_kind} {child_key} of {kind} {key}: {e!r}")
        raise

    # Step 3: the only mutation of the child, if needed.
    outcome: Outcome
    condition: Condition
    replicas = resolving.desired_replicas(instance)
    if child is None:
        desired = resolving.resolve(instance, settings=settings)
        try:
            child = await accessor.create(references.DEPLOYMENTS, desired, logger=logger)
        except Exception as e:
            logger.error(f"Failed to create {child_kind} {child_key} of {kind} {key}: {e!r}")
            raise
        logger.info(f"{child_kind} {child_key} is created with {replicas!r} replicas.")
        outcome, condition = REQUEUE, Condition.CREATED

    elif child.get('spec', {}).get('replicas') != replicas:
        _warn_if_foreign(instance, child, logger=logger)
        current = child.get('spec', {}).get('replicas')
        scaled = copy.deepcopy(child)
        scaled.setdefault('spec', {})['replicas'] = replicas
        try:
            child = await accessor.update(references.DEPLOYMENTS, scaled, logger=logger)
        except Exception as e:
            logger.error(f"Failed to scale {child_kind} {child_key} of {kind} {key}: {e!r}")
            raise
        logger.info(f"{child_kind} {child_key} is scaled from {current!r} to {replicas!r} replicas.")
        outcome, condition = DONE, Condition.SCALED

    else:
        logger.debug(f"{child_kind} {child_key} is in sync with {replicas!r} replicas.")
        outcome, condition = DONE, Condition.SYNCED

    if settings.status.enabled:
        status = make_status(child, condition=condition)
        await report_status(key, instance, status, accessor=accessor, logger=logger)

    return outcome


def make_status(
        child: bodies.RawBody,
        *,
        condition: Condition,
) -> dict[str, Any]:
    return {
        'deployment': child.get('metadata', {}).get('name'),
        'replicas': child.get('spec', {}).get('replicas'),
        'availableReplicas': child.get('status', {}).get('availableReplicas') or 0,
        'condition': condition.value,
    }


async def report_status(
        key: references.ObjectKey,
        instance: bodies.RawBody,
        status: Mapping[str, Any],
        *,
        accessor: accessors.ClusterAccessor,
        logger: typedefs.Logger,
) -> None:
    """
    Store the observed state of the child in the custom resource's status.

    Only the changed status is patched, so that the steady state causes
    no mutations and no new watch-events (otherwise, it would never end).
    """
    kind = references.CUSTOMOPERATORS.kind
    current = instance.get('status', {})
    if all(current.get(field) == value for field, value in status.items()):
        return

    try:
        patched = await accessor.patch_status(references.CUSTOMOPERATORS, key, status, logger=logger)
    except Exception as e:
        logger.error(f"Failed to patch the status of {kind} {key}: {e!r}")
        raise
    if patched is None:
        logger.debug(f"{kind} {key} has disappeared; the status is not stored.")


def _warn_if_foreign(
        instance: bodies.RawBody,
        child: bodies.RawBody,
        *,
        logger: typedefs.Logger,
) -> None:
    ref = hierarchies.get_controller_reference(child)
    uid = instance.get('metadata', {}).get('uid')
    if ref is not None and uid is not None and ref.get('uid') != uid:
        name = child.get('metadata', {}).get('name')
        logger.warning(f"Deployment {name} is controlled by {ref.get('kind')} {ref.get('name')}, "
                       f"not by this one. Scaling it anyway.")

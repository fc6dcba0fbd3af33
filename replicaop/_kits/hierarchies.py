"""
All the functions to properly build the object hierarchies.

The objects are the raw dicts as sent to/received from the K8s API.
Since the owned objects are usually not yet stored in the cluster,
the whole bodies are modified in place, no patches are needed.
"""
from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

from replicaop._cogs.structs import bodies

K8sObject = MutableMapping[str, Any]


def append_owner_reference(
        obj: K8sObject,
        owner: bodies.RawBody,
) -> None:
    """
    Append an owner reference to the object, if it is not yet there.
    """
    owner_ref = bodies.build_owner_reference(owner)
    refs = obj.setdefault('metadata', {}).setdefault('ownerReferences', [])
    if not any(ref.get('uid') == owner_ref.get('uid') for ref in refs):
        refs.append(owner_ref)


def get_controller_reference(
        obj: Mapping[str, Any],
) -> bodies.OwnerReference | None:
    """
    Get the owner reference of the object's controller, if there is any.

    K8s guarantees that there is at most one owner reference with
    ``controller: true``; all other owners, if any, are not controllers.
    """
    for ref in obj.get('metadata', {}).get('ownerReferences', []):
        if ref.get('controller'):
            return ref
    return None


def label(
        obj: K8sObject,
        labels: Mapping[str, str],
        *,
        nested: Iterable[str] = (),
) -> None:
    """
    Apply the labels to the object, and to its nested sub-objects if requested.

    The nested sub-objects are specified as dot-separated paths from the root
    (e.g. ``"spec.template"``); the missing parts of the paths are created.
    The already existing labels are preserved as they are.
    """
    targets = [obj]
    for path in nested:
        sub = obj
        for part in path.split('.'):
            sub = sub.setdefault(part, {})
        targets.append(sub)

    for target in targets:
        target_labels = target.setdefault('metadata', {}).setdefault('labels', {})
        for key, val in labels.items():
            target_labels.setdefault(key, val)


def harmonize_naming(
        obj: K8sObject,
        name: str,
) -> None:
    """
    Name the object exactly as provided, unless it has its own name already.

    The exact name is needed since the child is looked up by that name later.
    An object with its own ``name`` or ``generateName`` is left as is.
    """
    metadata = obj.setdefault('metadata', {})
    if 'name' not in metadata and 'generateName' not in metadata:
        metadata['name'] = name


def adjust_namespace(
        obj: K8sObject,
        namespace: str | None,
) -> None:
    """
    Put the object into the namespace, unless it has its own namespace already.

    It is a common practice to keep the children objects in the same namespace
    as their owner.
    """
    metadata = obj.setdefault('metadata', {})
    if metadata.get('namespace') is None:
        metadata['namespace'] = namespace

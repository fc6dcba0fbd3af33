"""
All the structures coming from/to the Kubernetes API.

For type-checking, they are detailed to the per-field level
(``TypedDict`` instead of just ``Mapping[Any, Any]``), but only for
the fields used by the operator. All other fields are passed through as is.

Everything marked "raw" is plain JSON-decoded data from the Kubernetes API,
as retrieved in watching or fetching API calls. "Input" is a parsed line
of a watch-stream as is, while "event" is an "input" without the errors.
"""
from collections.abc import Mapping
from typing import Any, Literal, TypedDict, cast

from replicaop._cogs.structs import references

Labels = Mapping[str, str]

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class OwnerReference(TypedDict, total=False):
    controller: bool
    blockOwnerDeletion: bool
    apiVersion: str
    kind: str
    name: str
    uid: str


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: dict[str, str]
    annotations: dict[str, str]
    ownerReferences: list[OwnerReference]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: dict[str, Any]
    status: dict[str, Any]


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: RawBody | RawError


# As passed to the watchers after processing the errors and special cases.
class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


def build_owner_reference(
        body: RawBody,
) -> OwnerReference:
    """
    Construct an owner reference object for the parent-children relationships.

    The structure needed to link the children objects to the current object as a parent.
    See https://kubernetes.io/docs/concepts/workloads/controllers/garbage-collection/

    Keep in mind that some fields can be absent: e.g. ``uid`` for the bodies
    that were never stored in the cluster (as in tests and dry-runs).
    """
    ref = dict(
        controller=True,
        blockOwnerDeletion=True,
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=body.get('metadata', {}).get('name'),
        uid=body.get('metadata', {}).get('uid'),
    )
    return cast(OwnerReference, {key: val for key, val in ref.items() if val})


def build_stub(
        resource: references.Resource,
        key: references.ObjectKey,
) -> RawBody:
    """
    Construct a minimal body of an object known only by its key.

    It is used to identify the object in logs before the object is fetched
    (and if it is not fetched at all, e.g. if it does not exist anymore).
    """
    return RawBody(
        apiVersion=resource.api_version,
        kind=resource.kind or '',
        metadata=RawMeta(namespace=key.namespace, name=key.name),
    )


def get_key(body: RawBody) -> references.ObjectKey:
    meta = body.get('metadata', {})
    namespace = references.NamespaceName(meta.get('namespace', ''))
    return references.ObjectKey(namespace=namespace, name=meta.get('name', ''))

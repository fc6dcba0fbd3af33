"""
The cluster state accessor: the only way the reconciliation touches the cluster.

The reconciliation depends on the capabilities declared in the protocol,
not on the API client: reading an object by its namespaced name, creating it,
replacing it as a whole, and merge-patching the status. The default accessor
implements them via the K8s API; the tests substitute an in-memory one.

All accessors signal the outcomes of the operations via the errors
of :mod:`errors` -- most notably, :class:`errors.APINotFoundError`
for absent objects and :class:`errors.APIConflictError` for conflicts --
regardless of how the cluster state is actually stored.
"""
from collections.abc import Mapping
from typing import Any, Protocol

from replicaop._cogs.clients import creating, fetching, patching, replacing
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references


class ClusterAccessor(Protocol):

    async def get(
            self,
            resource: references.Resource,
            key: references.ObjectKey,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        """ Read an object; raise `APINotFoundError` if it is absent. """
        ...

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        """ Create an object; raise `APIAlreadyExistsError` if it exists. """
        ...

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        """ Replace an object; raise `APIConflictError` if it was modified since read. """
        ...

    async def patch_status(
            self,
            resource: references.Resource,
            key: references.ObjectKey,
            status: Mapping[str, Any],
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody | None:
        """ Merge-patch the status; return ``None`` if the object is absent. """
        ...


class APIAccessor:
    """ The cluster state accessor via the K8s API of the logged-in cluster. """

    def __init__(self, *, settings: configuration.OperatorSettings) -> None:
        super().__init__()
        self.settings = settings

    async def get(
            self,
            resource: references.Resource,
            key: references.ObjectKey,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        return await fetching.read_obj(
            settings=self.settings,
            resource=resource,
            namespace=key.namespace,
            name=key.name,
            logger=logger,
        )

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        return await creating.create_obj(
            settings=self.settings,
            resource=resource,
            body=body,
            logger=logger,
        )

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody:
        return await replacing.replace_obj(
            settings=self.settings,
            resource=resource,
            body=body,
            logger=logger,
        )

    async def patch_status(
            self,
            resource: references.Resource,
            key: references.ObjectKey,
            status: Mapping[str, Any],
            *,
            logger: typedefs.Logger,
    ) -> bodies.RawBody | None:
        return await patching.patch_obj(
            settings=self.settings,
            resource=resource,
            namespace=key.namespace,
            name=key.name,
            patch={'status': dict(status)},
            logger=logger,
        )

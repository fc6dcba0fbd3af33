from replicaop._cogs.clients import api
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references


async def read_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Read one specific object by its namespaced name.

    The absence of the object is not hidden: it is escalated as
    :class:`errors.APINotFoundError`, the same as all other API errors,
    since the meaning of the absence is the caller's decision.
    """
    body: bodies.RawBody = await api.get(
        url=resource.get_url(namespace=namespace, name=name),
        settings=settings,
        logger=logger,
    )
    return body


async def list_objs(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        logger: typedefs.Logger,
) -> tuple[list[bodies.RawBody], str | None]:
    """
    List the objects of specific resource type.

    The cluster-scoped call is used if the operator serves all namespaces.
    Otherwise, the namespace-scoped call is used for every served namespace.
    """
    rsp = await api.get(
        url=resource.get_url(namespace=namespace),
        settings=settings,
        logger=logger,
    )

    items: list[bodies.RawBody] = []
    resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
    for item in rsp.get('items', []):
        if 'kind' in rsp:
            item.setdefault('kind', rsp['kind'][:-4] if rsp['kind'][-4:] == 'List' else rsp['kind'])
        if 'apiVersion' in rsp:
            item.setdefault('apiVersion', rsp['apiVersion'])
        items.append(item)

    return items, resource_version

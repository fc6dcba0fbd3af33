from replicaop._cogs.clients import api
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references


async def replace_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        body: bodies.RawBody,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Replace an object with a new body as a whole.

    The body is expected to be previously read from the API and then modified,
    so that it contains the object's ``metadata.resourceVersion``. In that case,
    K8s rejects the replacement if the object was modified in the meantime:
    :class:`errors.APIConflictError` is raised, and nothing is overwritten.

    Only the main body is replaced: the status subresource, if defined
    for the resource, is ignored by K8s in such requests.
    """
    meta = body.get('metadata', {})
    namespace = references.NamespaceName(meta['namespace']) if resource.namespaced else None
    replaced_body: bodies.RawBody = await api.put(
        url=resource.get_url(namespace=namespace, name=meta['name']),
        payload=body,
        settings=settings,
        logger=logger,
    )
    return replaced_body

from typing import cast

from replicaop._cogs.clients import api
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references


async def create_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace = None,
        name: str | None = None,
        body: bodies.RawBody | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create an object.

    The namespace & name, if passed explicitly, are used only if the body
    does not have them already. The body is modified in place.

    If the object exists already, :class:`errors.APIAlreadyExistsError`
    is raised: it is never replaced or merged implicitly.
    """
    body = body if body is not None else bodies.RawBody()
    if namespace is not None:
        body.setdefault('metadata', {}).setdefault('namespace', namespace)
    if name is not None:
        body.setdefault('metadata', {}).setdefault('name', name)

    namespace = cast(references.Namespace, body.get('metadata', {}).get('namespace'))
    created_body: bodies.RawBody = await api.post(
        url=resource.get_url(namespace=namespace),
        payload=body,
        settings=settings,
        logger=logger,
    )
    return created_body

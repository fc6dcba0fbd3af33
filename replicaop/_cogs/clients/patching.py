from collections.abc import Mapping
from typing import Any

from replicaop._cogs.clients import api, errors
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import bodies, references


async def patch_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        patch: Mapping[str, Any],
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Patch a resource of specific kind with a JSON merge-patch.

    If the resource has the status subresource, the status is patched
    via that subresource, and the rest of the patch via the main body.
    Either of the calls is skipped if there is nothing to patch there.

    Returns the patched body. The patched body can be partial (status-only,
    no-status, or empty) -- depending on whether there were fields in the body
    or in the status to patch; if neither had fields for patching, the result
    is an empty body.

    Returns ``None`` if the underlying object is absent, as detected by trying
    to patch it and failing with HTTP 404. This can happen if the object was
    deleted during the processing, so that the operator was unaware of this
    until the last moment.
    """
    as_subresource = 'status' in resource.subresources
    body_patch = dict(patch)  # shallow: for mutation of the top-level keys below.
    status_patch = body_patch.pop('status', None) if as_subresource else None

    try:
        patched_body = bodies.RawBody()

        if body_patch:
            patched_body = await api.patch(
                url=resource.get_url(namespace=namespace, name=name),
                headers={'Content-Type': 'application/merge-patch+json'},
                payload=body_patch,
                settings=settings,
                logger=logger,
            )

        if status_patch:
            response = await api.patch(
                url=resource.get_url(namespace=namespace, name=name, subresource='status'),
                headers={'Content-Type': 'application/merge-patch+json'},
                payload={'status': status_patch},
                settings=settings,
                logger=logger,
            )
            patched_body['status'] = response.get('status')

        return patched_body

    except errors.APINotFoundError:
        return None

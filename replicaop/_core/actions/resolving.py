"""
Resolving the desired state of the child deployment from its custom resource.

Everything here is pure: no I/O, no clock, no randomness. The same custom
resource and the same settings always produce the same child body, so the
resolution can be repeated on every reconciliation at no risk.
"""
from typing import Any, cast

from replicaop._cogs.configs import configuration
from replicaop._cogs.structs import bodies, references
from replicaop._kits import hierarchies

# The label with the custom resource's name; it is in the selector of the child.
OWNER_LABEL = 'customoperator_cr'


def make_labels(
        instance: bodies.RawBody,
        *,
        settings: configuration.ChildrenSettings,
) -> dict[str, str]:
    """
    The labels of the child and its pods, also used as the pods' selector.

    They depend only on the custom resource's name, so they remain stable
    for the whole lifetime of the child (the selectors are immutable in K8s).
    """
    name = instance.get('metadata', {}).get('name', '')
    return {'app': settings.app_label, OWNER_LABEL: name}


def child_name(
        instance: bodies.RawBody,
        *,
        settings: configuration.ChildrenSettings,
) -> str:
    if settings.name is not None:
        return settings.name
    name = instance.get('metadata', {}).get('name', '')
    return f'{name}-{settings.name_suffix}' if settings.name_suffix else name


def child_key(
        instance: bodies.RawBody,
        *,
        settings: configuration.ChildrenSettings,
) -> references.ObjectKey:
    """ The child is always in the same namespace as its custom resource. """
    namespace = references.NamespaceName(instance.get('metadata', {}).get('namespace', ''))
    return references.ObjectKey(namespace=namespace, name=child_name(instance, settings=settings))


def desired_replicas(instance: bodies.RawBody) -> Any:
    return instance.get('spec', {}).get('replicas', 0)


def resolve(
        instance: bodies.RawBody,
        *,
        settings: configuration.OperatorSettings,
) -> bodies.RawBody:
    """
    Build the full body of the child deployment as it should be created.
    """
    spec = instance.get('spec', {})
    port = spec.get('port')  # 0 is passed through as is, for the API to judge
    labels = make_labels(instance, settings=settings.children)
    key = child_key(instance, settings=settings.children)

    body: dict[str, Any] = {
        'apiVersion': references.DEPLOYMENTS.api_version,
        'kind': references.DEPLOYMENTS.kind,
        'spec': {
            'replicas': desired_replicas(instance),
            'selector': {'matchLabels': dict(labels)},
            'template': {
                'spec': {
                    'containers': [{
                        'name': settings.children.container_name,
                        'image': spec.get('image') or settings.children.image,
                        'ports': [{
                            'name': settings.children.port_name,
                            'containerPort': port if port is not None else settings.children.port,
                        }],
                    }],
                },
            },
        },
    }

    hierarchies.harmonize_naming(body, name=key.name)
    hierarchies.adjust_namespace(body, namespace=key.namespace)
    hierarchies.label(body, labels, nested=['spec.template'])
    hierarchies.append_owner_reference(body, owner=instance)
    return cast(bodies.RawBody, body)

import dataclasses
import urllib.parse
from typing import Iterator, Mapping, NamedTuple, NewType

# A specific really existing addressable namespace (at least, the one assumed to be so).
NamespaceName = NewType('NamespaceName', str)

# A namespace reference usable in the API calls. `None` means cluster-wide API calls.
Namespace = NamespaceName | None


class ObjectKey(NamedTuple):
    """
    A namespaced name of an individual object, as used by the triggers.

    It is the only identity known to the reconciliation: the rest of
    the knowledge about the object is re-read from the cluster every time.
    """
    namespace: NamespaceName
    name: str

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}'


@dataclasses.dataclass(frozen=True, eq=False, repr=False)
class Resource:
    """
    A reference to a very specific custom or built-in resource kind.

    It is used to form the K8s API URLs. Generally, K8s API only needs
    an API group, an API version, and a plural name of the resource.
    The kind is remembered for the objects' bodies and for logging.
    """

    group: str
    """
    The resource's API group; e.g. ``"replica.example.com"``, ``"apps"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1alpha1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"deployments"``, ``"customoperators"``.
    """

    kind: str | None = None
    """
    The resource's kind (as in YAML files); e.g. ``"Deployment"``.
    """

    namespaced: bool | None = None
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    subresources: frozenset[str] = frozenset()
    """
    The resource's subresources, if defined; e.g. ``{"status", "scale"}``.
    """

    def __hash__(self) -> int:
        return hash((self.group, self.version, self.plural))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            self_tuple = (self.group, self.version, self.plural)
            other_tuple = (other.group, other.version, other.plural)
            return self_tuple == other_tuple
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    def __iter__(self) -> Iterator[str]:
        return iter((self.group, self.version, self.plural))

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: Namespace = None,
            name: str | None = None,
            subresource: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, the namespace is ignored.

        If the name is not set, the URL for the resource list is returned.
        Otherwise (if set), the URL for the individual resource is returned.

        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if subresource is not None and name is None:
            raise ValueError("Subresources can be used only with specific resources by their name.")
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: list[str | None] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
            subresource,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


# The desired state, as declared by the users.
CUSTOMOPERATORS = Resource(
    'replica.example.com', 'v1alpha1', 'customoperators',
    kind='CustomOperator',
    namespaced=True,
    subresources=frozenset({'status'}),
)

# The managed children, exactly one per CustomOperator.
DEPLOYMENTS = Resource(
    'apps', 'v1', 'deployments',
    kind='Deployment',
    namespaced=True,
    subresources=frozenset({'status', 'scale'}),
)

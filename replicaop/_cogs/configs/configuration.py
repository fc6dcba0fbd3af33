"""
All configuration flags, options, settings to fine-tune the operator.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
The CLI options are mapped onto these settings in :mod:`replicaop.cli`;
when embedded, the settings object can be constructed and passed directly.
"""
import dataclasses
from collections.abc import Iterable


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the API requests (in seconds). ``None`` disables the timeout.
    """

    connect_timeout: float | None = None
    """
    A timeout for establishing a connection to the API server (in seconds).
    """

    error_backoffs: Iterable[float] = ()
    """
    Backoffs for the API requests failing with connection errors,
    server-side errors (HTTP 5xx), or timeouts -- before giving up.

    By default, there are no retries at this level: every failure escalates
    to the dispatcher immediately, which retries the whole reconciliation
    of the key with its own backoff (see :attr:`QueueingSettings.error_delays`).
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: float | None = None
    """
    The maximum duration of one streaming request. Patched in some tests.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: float | None = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: float | None = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class QueueingSettings:
    """
    Settings for how the triggered keys are dispatched to the reconciliation.
    """

    worker_limit: int | None = None
    """
    How many keys can be reconciled simultaneously.
    If ``None``, there is no limit (as many as triggered).
    A single key is never reconciled in parallel regardless of this limit.
    """

    exit_timeout: float = 2.0
    """
    How long the running reconciliations are awaited when the operator exits,
    before they are cancelled.
    """

    error_delays: Iterable[float] = (1, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233, 377, 610)
    """
    Backoff intervals for the failed reconciliations of a key.

    Every further failure leads to the next, even bigger delay (10m is enough).
    Every success resets the backoff intervals, and it goes from the beginning
    on the next failure. When the intervals are exhausted, the last one is used.

    To disable throttling (on your own risk), set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class ChildrenSettings:
    """
    Settings for the managed children (deployments) of the custom resources.

    The image & port can be overridden per-object via ``spec.image``
    and ``spec.port``; all other values are operator-wide.
    """

    name: str | None = None
    """
    A fixed name of the child deployment, the same for all custom resources.

    If set, there can be only one custom resource per namespace (all of them
    would compete for the same deployment). If ``None`` (the default),
    the name is derived from the custom resource's name and a suffix.
    """

    name_suffix: str = 'deployment'
    """
    A suffix to add to the custom resource's name for the child's name.
    """

    image: str = 'nginx:latest'
    container_name: str = 'nginx-image'
    port: int = 80
    port_name: str = 'nginx'

    app_label: str = 'replicas'
    """
    The value of the ``app`` label of the children and their pods.

    Mind that the labels are used in the children's selectors, which are
    immutable in K8s: changing it for the existing children will fail.
    """


@dataclasses.dataclass
class StatusSettings:

    enabled: bool = False
    """
    Should the observed state of the child be reported in the custom resource's
    ``status``? This requires the status subresource and the RBAC permissions
    to patch it. Off by default: the custom resources are then never modified.
    """


@dataclasses.dataclass
class OperatorSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    queueing: QueueingSettings = dataclasses.field(default_factory=QueueingSettings)
    children: ChildrenSettings = dataclasses.field(default_factory=ChildrenSettings)
    status: StatusSettings = dataclasses.field(default_factory=StatusSettings)

"""
The main module for all the exported functions & classes of the operator.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the operator's top-level interface,
# as it is seen by the embedding code & tests. So, we export the individual names.

from replicaop._cogs.configs.configuration import (
    OperatorSettings,
    NetworkingSettings,
    WatchingSettings,
    QueueingSettings,
    ChildrenSettings,
    StatusSettings,
)
from replicaop._cogs.helpers.typedefs import (
    Logger,
)
from replicaop._cogs.helpers.versions import (
    version as __version__,
)
from replicaop._cogs.clients.accessors import (
    ClusterAccessor,
    APIAccessor,
)
from replicaop._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIAlreadyExistsError,
)
from replicaop._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
    Vault,
)
from replicaop._cogs.structs.references import (
    ObjectKey,
    Resource,
    CUSTOMOPERATORS,
    DEPLOYMENTS,
)
from replicaop._core.actions.loggers import (
    configure,
    LogFormat,
    ObjectLogger,
)
from replicaop._core.actions.reconciling import (
    Outcome,
    DONE,
    REQUEUE,
    reconcile,
)
from replicaop._core.actions.resolving import (
    resolve,
)
from replicaop._core.intents.piggybacking import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from replicaop._core.reactor.queueing import (
    Dispatcher,
)
from replicaop._core.reactor.running import (
    run,
    operator,
    reconcile_once,
)

__all__ = [
    'OperatorSettings',
    'NetworkingSettings',
    'WatchingSettings',
    'QueueingSettings',
    'ChildrenSettings',
    'StatusSettings',
    'Logger',
    'ClusterAccessor', 'APIAccessor',
    'APIError',
    'APIClientError',
    'APIServerError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APIAlreadyExistsError',
    'LoginError', 'ConnectionInfo', 'Vault',
    'ObjectKey', 'Resource', 'CUSTOMOPERATORS', 'DEPLOYMENTS',
    'configure', 'LogFormat', 'ObjectLogger',
    'Outcome', 'DONE', 'REQUEUE', 'reconcile',
    'resolve',
    'login',
    'login_with_kubeconfig',
    'login_with_service_account',
    'Dispatcher',
    'run', 'operator', 'reconcile_once',
]

"""
Rudimentary logins to the cluster: in-cluster or via a kubeconfig file.

Only the simplest credentials are supported (see :mod:`credentials`):
the complex auth-providers with multi-step token retrieval are not.
If needed, the connection info can be constructed elsewhere and put
into the vault directly, bypassing these logins.
"""
import os
from typing import Any

import yaml

from replicaop._cogs.helpers import typedefs
from replicaop._cogs.structs import credentials

# Keep as constants to make them patchable. Higher priority is more preferred.
PRIORITY_OF_KUBECONFIG: int = 10
PRIORITY_OF_SERVICE_ACCOUNT: int = 20

# As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_PATH = '/var/run/secrets/kubernetes.io/serviceaccount'
SERVICE_ACCOUNT_SERVER = 'https://kubernetes.default.svc'
DEFAULT_KUBECONFIG = '~/.kube/config'


def login(*, logger: typedefs.Logger) -> credentials.ConnectionInfo:
    """
    Login with all the available methods, and use the most preferred one.
    """
    infos: list[credentials.ConnectionInfo] = []
    for fn in [login_with_service_account, login_with_kubeconfig]:
        info = fn(logger=logger)
        if info is not None:
            infos.append(info)

    if not infos:
        raise credentials.LoginError("Ran out of connection credentials: "
                                     "neither in-cluster, nor via kubeconfig.")

    info = max(infos, key=lambda info: info.priority)
    logger.debug(f"Logged in to {info.server} (out of {len(infos)} logins).")
    return info


def login_with_service_account(
        *,
        logger: typedefs.Logger,
        **_: Any,
) -> credentials.ConnectionInfo | None:
    """
    A minimalistic login that can get raw data from a mounted service account.
    """
    token_path = os.path.join(SERVICE_ACCOUNT_PATH, 'token')
    ns_path = os.path.join(SERVICE_ACCOUNT_PATH, 'namespace')
    ca_path = os.path.join(SERVICE_ACCOUNT_PATH, 'ca.crt')

    if not os.path.exists(token_path):
        return None

    with open(token_path, encoding='utf-8') as f:
        token = f.read().strip()

    namespace: str | None = None
    if os.path.exists(ns_path):
        with open(ns_path, encoding='utf-8') as f:
            namespace = f.read().strip()

    logger.debug("Configured in cluster with a service account.")
    return credentials.ConnectionInfo(
        server=SERVICE_ACCOUNT_SERVER,
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token or None,
        default_namespace=namespace or None,
        priority=PRIORITY_OF_SERVICE_ACCOUNT,
    )


def login_with_kubeconfig(
        *,
        logger: typedefs.Logger,
        **_: Any,
) -> credentials.ConnectionInfo | None:
    """
    A minimalistic login that can get raw data from the kubeconfig file(s).

    As with ``kubectl``, the ``$KUBECONFIG`` variable can list several files
    (the first value of every field wins); ``~/.kube/config`` is the fallback.
    """

    # As per https://kubernetes.io/docs/concepts/configuration/organize-cluster-access-kubeconfig/
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser(DEFAULT_KUBECONFIG)):
        kubeconfig = DEFAULT_KUBECONFIG
    if not kubeconfig:
        return None

    paths = [path.strip() for path in kubeconfig.split(os.pathsep)]
    paths = [os.path.expanduser(path) for path in paths if path]

    # As prescribed: if the file is absent or non-deserialisable, then fail. The first value wins.
    current_context: str | None = None
    contexts: dict[Any, Any] = {}
    clusters: dict[Any, Any] = {}
    users: dict[Any, Any] = {}
    for path in paths:

        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for item in config.get('contexts') or []:
            contexts.setdefault(item['name'], item.get('context') or {})
        for item in config.get('clusters') or []:
            clusters.setdefault(item['name'], item.get('cluster') or {})
        for item in config.get('users') or []:
            users.setdefault(item['name'], item.get('user') or {})

    # Once fully parsed, use the current context only.
    if current_context is None:
        raise credentials.LoginError('Current context is not set in kubeconfigs.')
    try:
        context = contexts[current_context]
        cluster = clusters[context['cluster']]
        user = users.get(context.get('user'), {})
    except KeyError as e:
        raise credentials.LoginError(f"Kubeconfig refers to an undefined entry: {e}") from e

    # No fake API request is made to refresh the token: the stored one is used as is.
    provider_token = user.get('auth-provider', {}).get('config', {}).get('access-token')

    logger.debug(f"Configured via kubeconfig with the context {current_context!r}.")
    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=context.get('namespace'),
        priority=PRIORITY_OF_KUBECONFIG,
    )

import asyncio
import contextlib
import functools
import logging
import signal
import threading
from collections.abc import Collection

from replicaop._cogs.clients import accessors, auth
from replicaop._cogs.configs import configuration
from replicaop._cogs.structs import credentials, references
from replicaop._core.actions import reconciling
from replicaop._core.engines import probing
from replicaop._core.intents import piggybacking
from replicaop._core.reactor import queueing

logger = logging.getLogger(__name__)


def run(
        *,
        settings: configuration.OperatorSettings | None = None,
        namespaces: Collection[str] = (),
        clusterwide: bool = False,
        liveness_endpoint: str | None = None,
        stop_flag: asyncio.Event | None = None,
        ready_flag: asyncio.Event | None = None,
        vault: credentials.Vault[auth.APIContext] | None = None,
) -> None:
    """
    Run the whole operator synchronously.

    This function should be used to run an operator in normal sync mode.
    """
    with contextlib.suppress(asyncio.CancelledError):
        asyncio.run(operator(
            settings=settings,
            namespaces=namespaces,
            clusterwide=clusterwide,
            liveness_endpoint=liveness_endpoint,
            stop_flag=stop_flag,
            ready_flag=ready_flag,
            vault=vault,
        ))


async def operator(
        *,
        settings: configuration.OperatorSettings | None = None,
        namespaces: Collection[str] = (),
        clusterwide: bool = False,
        liveness_endpoint: str | None = None,
        stop_flag: asyncio.Event | None = None,
        ready_flag: asyncio.Event | None = None,
        vault: credentials.Vault[auth.APIContext] | None = None,
) -> None:
    """
    Run the whole operator asynchronously.

    This function should be used to run an operator in an asyncio event-loop
    if the operator is orchestrated explicitly and manually.

    The operator runs until stopped by a signal, by the stop-flag, or until
    any of its root tasks (the watchers, the liveness endpoint) fails.
    """
    settings = settings if settings is not None else configuration.OperatorSettings()
    vault = vault if vault is not None else credentials.Vault(piggybacking.login(logger=logger))
    auth.vault_var.set(vault)  # inherited by all the tasks spawned below

    if clusterwide and namespaces:
        raise ValueError("Either the namespaces or cluster-wide mode can be used, not both.")
    if not clusterwide and not namespaces:
        logger.warning("No namespaces are specified. Assuming --all-namespaces.")
    served: list[references.Namespace] = (
        [references.NamespaceName(namespace) for namespace in namespaces] if namespaces else [None]
    )

    accessor = accessors.APIAccessor(settings=settings)
    dispatcher = queueing.Dispatcher(
        reconciler=functools.partial(reconciling.reconcile, accessor=accessor, settings=settings),
        settings=settings,
    )

    tasks: list[asyncio.Task[None]] = []
    signal_flag: asyncio.Future[signal.Signals] = asyncio.get_running_loop().create_future()
    tasks.append(asyncio.create_task(
        _stopper(signal_flag=signal_flag, stop_flag=stop_flag),
        name='stop-flag checker'))
    for namespace in served:
        for resource, mapper in [
            (references.CUSTOMOPERATORS, queueing.keys_of_instances),
            (references.DEPLOYMENTS, queueing.keys_of_owners),
        ]:
            where = f'in {namespace!r}' if namespace is not None else 'cluster-wide'
            tasks.append(asyncio.create_task(
                queueing.watcher(
                    settings=settings,
                    resource=resource,
                    namespace=namespace,
                    dispatcher=dispatcher,
                    mapper=mapper,
                ),
                name=f'watcher for {resource} {where}'))
    if liveness_endpoint:
        tasks.append(asyncio.create_task(
            probing.health_reporter(endpoint=liveness_endpoint),
            name='health reporter'))

    _add_signal_handlers(signal_flag)
    if ready_flag is not None:
        ready_flag.set()

    try:
        await _run_tasks(tasks)
    finally:
        await dispatcher.close()
        await vault.close()


async def reconcile_once(
        key: references.ObjectKey,
        *,
        settings: configuration.OperatorSettings | None = None,
        vault: credentials.Vault[auth.APIContext] | None = None,
) -> reconciling.Outcome:
    """
    Reconcile one custom resource once, with no watching and no retries.
    """
    settings = settings if settings is not None else configuration.OperatorSettings()
    vault = vault if vault is not None else credentials.Vault(piggybacking.login(logger=logger))
    auth.vault_var.set(vault)
    try:
        accessor = accessors.APIAccessor(settings=settings)
        return await reconciling.reconcile(key, accessor=accessor, settings=settings)
    finally:
        await vault.close()


async def _run_tasks(tasks: Collection[asyncio.Task[None]]) -> None:
    """
    Run the root tasks until any of them exits, then stop all of them.

    The root tasks are expected to run forever (they never exit normally).
    If any of them has failed, its error is re-raised once all are stopped.
    """
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Root task {task.get_name()!r} has failed: {task.exception()!r}")
            raise task.exception()  # type: ignore[misc]


async def _stopper(
        *,
        signal_flag: asyncio.Future[signal.Signals],
        stop_flag: asyncio.Event | None,
) -> None:
    """
    A root task for external stopping. Once it exits, the whole operator stops.
    """
    waiters: list[asyncio.Future[object]] = [signal_flag]
    if stop_flag is not None:
        waiters.append(asyncio.ensure_future(stop_flag.wait()))
    try:
        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters[1:]:
            waiter.cancel()

    if signal_flag in done:
        logger.info(f"Signal {signal_flag.result().name} is received. Operator is stopping.")
    else:
        logger.info("Stop-flag is raised. Operator is stopping.")


def _add_signal_handlers(signal_flag: asyncio.Future[signal.Signals]) -> None:

    def set_signal(signum: signal.Signals) -> None:
        if not signal_flag.done():
            signal_flag.set_result(signum)

    # On Ctrl+C or pod termination, stop all tasks gracefully.
    if threading.current_thread() is threading.main_thread():
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, set_signal, signal.SIGINT)
            loop.add_signal_handler(signal.SIGTERM, set_signal, signal.SIGTERM)
        except NotImplementedError:
            logger.warning("OS signals are ignored: can't add signal handler in Windows.")
    else:
        logger.warning("OS signals are ignored: running not in the main thread.")

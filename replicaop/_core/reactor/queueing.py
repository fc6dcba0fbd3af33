"""
Kubernetes watching and the per-key dispatching of the reconciliations.

Every resource kind of interest is "watched" (as in ``kubectl get --watch``)
in a separate asyncio task in a never-ending loop. Every watch-event is mapped
to the keys of the custom resources affected by it: either the custom resource
itself, or the owner of the changed child deployment.

The keys are then dispatched to the per-key workers, which are created
on demand and destroyed as soon as there is nothing more to do for the key.
A key is never reconciled in parallel with itself; the different keys
are reconciled in parallel, optionally limited in number.

The workers do not queue the triggers: the reconciliation reads the latest
state of the cluster anyway, so it is enough to remember that the key
was triggered again while being reconciled (the "pressure"), and to reconcile
it once more after the current reconciliation is over -- no matter how many
triggers have arrived in between.
"""
import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable

from replicaop._cogs.aiokits import aiotime
from replicaop._cogs.clients import watching
from replicaop._cogs.configs import configuration
from replicaop._cogs.structs import bodies, references
from replicaop._core.actions import loggers, reconciling, throttlers

logger = logging.getLogger(__name__)

Reconciler = Callable[[references.ObjectKey], Awaitable[reconciling.Outcome]]
KeyMapper = Callable[[bodies.RawEvent], Iterable[references.ObjectKey]]


class Dispatcher:
    """
    Per-key workers for the triggered keys.

    Usage::

        dispatcher = Dispatcher(reconciler=fn, settings=settings)
        dispatcher.enqueue(ObjectKey('team-a', 'svc'))
        ...
        await dispatcher.close()
    """

    def __init__(
            self,
            *,
            reconciler: Reconciler,
            settings: configuration.OperatorSettings,
    ) -> None:
        super().__init__()
        self._reconciler = reconciler
        self._settings = settings
        self._pressures: dict[references.ObjectKey, asyncio.Event] = {}
        self._tasks: dict[references.ObjectKey, asyncio.Task[None]] = {}
        self._signaller = asyncio.Condition()
        self._limiter = (asyncio.Semaphore(settings.queueing.worker_limit)
                         if settings.queueing.worker_limit else None)
        self._closed = False

    def __contains__(self, key: references.ObjectKey) -> bool:
        return key in self._pressures

    def __len__(self) -> int:
        return len(self._pressures)

    def enqueue(self, key: references.ObjectKey) -> None:
        """
        Trigger the reconciliation of a key, now or after the current one.

        It is synchronous: there must be no moment when the worker has decided
        to exit, but the trigger is already added to its pressure.
        """
        if self._closed:
            raise RuntimeError("The dispatcher is closed; no new keys are accepted.")
        if key in self._pressures:
            self._pressures[key].set()
        else:
            self._pressures[key] = asyncio.Event()
            self._pressures[key].set()
            self._tasks[key] = asyncio.create_task(self._worker(key), name=f'worker for {key}')

    async def join(self) -> None:
        """ Wait until all the triggered keys are reconciled (mostly for tests). """
        async with self._signaller:
            await self._signaller.wait_for(lambda: not self._pressures)

    async def close(self) -> None:
        """
        Stop accepting the keys, and stop the workers.

        The running reconciliations are given some time to finish gracefully,
        and are then cancelled if they are still running.
        """
        self._closed = True
        try:
            await asyncio.wait_for(self.join(), timeout=self._settings.queueing.exit_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Unfinished reconciliations are cancelled for {list(self._tasks)!r}.")

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _worker(self, key: references.ObjectKey) -> None:
        """
        A single worker for a single key, each running in its own task.

        The worker exits as soon as the key is reconciled and not triggered
        again since the last reconciliation has started. The dispatcher will
        spawn a new worker when (and if) new triggers arrive.
        """
        pressure = self._pressures[key]
        throttler = throttlers.Throttler()
        object_logger = loggers.ObjectLogger(body=bodies.build_stub(references.CUSTOMOPERATORS, key))
        delays = self._settings.queueing.error_delays
        try:
            # IMPORTANT: There MUST be NO async/await-code between the final check
            # of the pressure and the removal from the workers, so that no triggers are lost.
            while pressure.is_set():
                pressure.clear()
                retry = True  # unless succeeded
                async with throttlers.throttled(throttler=throttler, delays=delays, logger=object_logger):
                    outcome = await self._reconcile(key)
                    retry = outcome.requeue
                    if outcome.requeue and outcome.delay:
                        logger.debug(f"Requeueing {key} in {outcome.delay} seconds.")
                        await aiotime.sleep(outcome.delay, wakeup=pressure)
                if retry:
                    pressure.set()

        finally:
            del self._pressures[key]
            del self._tasks[key]

            # Notify the waiters about the changes in the workers' overall state.
            async with self._signaller:
                self._signaller.notify_all()

    async def _reconcile(self, key: references.ObjectKey) -> reconciling.Outcome:
        async with self._limiter if self._limiter is not None else contextlib.nullcontext():
            return await self._reconciler(key)


def keys_of_instances(raw_event: bodies.RawEvent) -> Iterable[references.ObjectKey]:
    """ The custom resources trigger their own reconciliation. """
    yield bodies.get_key(raw_event['object'])


def keys_of_owners(raw_event: bodies.RawEvent) -> Iterable[references.ObjectKey]:
    """
    The deployments trigger the reconciliation of their controlling custom resources.

    The owners are always in the same namespace as their children,
    since the cross-namespace owner references are prohibited by K8s.
    The deployments of other controllers are ignored.
    """
    body = raw_event['object']
    namespace = references.NamespaceName(body.get('metadata', {}).get('namespace', ''))
    for ref in body.get('metadata', {}).get('ownerReferences', []):
        if not ref.get('controller') or not ref.get('name'):
            continue
        if ref.get('kind') != references.CUSTOMOPERATORS.kind:
            continue
        if ref.get('apiVersion', '').split('/')[0] != references.CUSTOMOPERATORS.group:
            continue
        yield references.ObjectKey(namespace=namespace, name=ref['name'])


async def watcher(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        dispatcher: Dispatcher,
        mapper: KeyMapper,
) -> None:
    """
    Watch the resource events via the API, and trigger the keys affected by them.

    The watcher is a never-ending task (unless an error happens or it is cancelled).
    It does no reconciliation itself, so it is never blocked by the slow ones.
    """
    stream = watching.infinite_watch(
        settings=settings,
        resource=resource,
        namespace=namespace,
    )
    async for raw_event in stream:
        for key in mapper(raw_event):
            dispatcher.enqueue(key)

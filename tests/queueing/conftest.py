import asyncio

import pytest

from replicaop._core.actions.reconciling import DONE
from replicaop._core.reactor.queueing import Dispatcher


class Reconciler:
    """
    A fake reconciliation, which records the calls and returns the pre-set outcomes.

    The calls can be blocked by clearing the gate, so that the triggers
    arrive while the key is being reconciled.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls = []
        self.outcomes = {}
        self.errors = {}
        self.gate = asyncio.Event()
        self.gate.set()
        self.started = asyncio.Event()
        self.running = 0
        self.max_running = 0

    async def __call__(self, key):
        self.calls.append(key)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        self.started.set()
        try:
            await self.gate.wait()
            if self.errors.get(key):
                raise self.errors[key].pop(0)
            outcomes = self.outcomes.get(key)
            return outcomes.pop(0) if outcomes else DONE
        finally:
            self.running -= 1


@pytest.fixture()
def reconciler():
    return Reconciler()


@pytest.fixture()
def settings(settings):
    settings.queueing.error_delays = [0]
    return settings


@pytest.fixture()
async def dispatcher(reconciler, settings):
    dispatcher = Dispatcher(reconciler=reconciler, settings=settings)
    try:
        yield dispatcher
    finally:
        await dispatcher.close()

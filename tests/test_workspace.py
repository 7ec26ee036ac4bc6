import asyncio

from services.workspace import WorkspaceRegistry

from tests.conftest import FakeAgent, FakeHistoryStore


class GatedHistoryStore(FakeHistoryStore):
    """Holds the first history load of one owner until released"""

    def __init__(self, slow_owner: str):
        super().__init__()
        self.slow_owner = slow_owner
        self.release = asyncio.Event()

    async def list_sessions(self, owner_id: str):
        if owner_id == self.slow_owner:
            await self.release.wait()
        return await super().list_sessions(owner_id)


async def test_slow_first_load_does_not_block_other_owners():
    store = GatedHistoryStore(slow_owner="owner-slow")
    registry = WorkspaceRegistry(store, FakeAgent, tick_interval=None)

    slow = asyncio.create_task(registry.get("owner-slow"))
    await asyncio.sleep(0)

    fast = await asyncio.wait_for(registry.get("owner-fast"), timeout=1)
    assert fast.manager.owner_id == "owner-fast"
    assert not slow.done()

    store.release.set()
    assert (await slow).manager.owner_id == "owner-slow"
    await registry.close()


async def test_concurrent_first_requests_share_one_workspace():
    registry = WorkspaceRegistry(FakeHistoryStore(), FakeAgent, tick_interval=None)

    first, second = await asyncio.gather(registry.get("owner-1"), registry.get("owner-1"))

    assert first is second
    await registry.close()

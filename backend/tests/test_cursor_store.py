"""Tests for the durable mirror cursor."""

import pytest

from medialane.services.mirror.cursor_store import Cursor, CursorStore

CHAIN = "STARKNET"


@pytest.mark.asyncio
async def test_load_defaults_to_start_block(uow_factory):
    store = CursorStore(uow_factory, start_block=6204232)

    cursor = await store.load(CHAIN)

    assert cursor == Cursor(last_block=6204232, continuation_token=None)


@pytest.mark.asyncio
async def test_save_then_load(uow_factory):
    store = CursorStore(uow_factory, start_block=0)

    await store.save(Cursor(last_block=42, continuation_token="tok"), CHAIN)
    await store.save(Cursor(last_block=43), CHAIN)

    assert await store.load(CHAIN) == Cursor(last_block=43)


@pytest.mark.asyncio
async def test_cursors_are_per_chain(uow_factory):
    store = CursorStore(uow_factory, start_block=0)

    await store.save(Cursor(last_block=10), CHAIN)

    assert (await store.load("STARKNET_SEPOLIA")).last_block == 0


@pytest.mark.asyncio
async def test_save_inside_uow_is_discarded_on_rollback(uow_factory):
    store = CursorStore(uow_factory, start_block=0)

    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            await store.save(Cursor(last_block=99), CHAIN, uow=uow)
            raise RuntimeError("apply failed")

    assert (await store.load(CHAIN)).last_block == 0


@pytest.mark.asyncio
async def test_advance_never_moves_backwards(uow_factory):
    store = CursorStore(uow_factory, start_block=0)

    assert await store.advance(CHAIN, 100) is True
    assert await store.advance(CHAIN, 50) is False
    assert await store.advance(CHAIN, 100) is False
    assert await store.advance(CHAIN, 150) is True

    assert (await store.load(CHAIN)).last_block == 150


@pytest.mark.asyncio
async def test_reset_moves_cursor_backwards(uow_factory):
    store = CursorStore(uow_factory, start_block=0)
    await store.save(Cursor(last_block=500, continuation_token="tok"), CHAIN)

    await store.reset(CHAIN, 120)

    assert await store.load(CHAIN) == Cursor(last_block=120, continuation_token=None)

"""Tests for paginated event fetching."""

import pytest

from medialane.services.blockchain.event_fetcher import EventFetcher
from medialane.services.blockchain.starknet_rpc import EventsPage


class PagedRpc:
    """Serves a fixed sequence of pages and records the tokens it was asked for."""

    def __init__(self, pages: list[EventsPage]):
        self.pages = pages
        self.tokens: list[str | None] = []

    async def get_events(self, address, from_block, to_block, keys, chunk_size, continuation_token):
        self.tokens.append(continuation_token)
        return self.pages[len(self.tokens) - 1]


def event(block_number, tx_hash="0x1"):
    return {
        "from_address": "0xabc",
        "keys": ["0x1"],
        "data": [],
        "block_number": block_number,
        "transaction_hash": tx_hash,
    }


@pytest.mark.asyncio
async def test_follows_continuation_tokens_until_exhausted():
    rpc = PagedRpc(
        [
            EventsPage(events=[event(1)], continuation_token="page-2"),
            EventsPage(events=[event(2)], continuation_token="page-3"),
            EventsPage(events=[event(3)], continuation_token=None),
        ]
    )
    fetcher = EventFetcher(rpc, chunk_size=1)  # type: ignore[arg-type]

    events = await fetcher.fetch_events("0xabc", 1, 3, [1])

    assert [e.block_number for e in events] == [1, 2, 3]
    assert rpc.tokens == [None, "page-2", "page-3"]


@pytest.mark.asyncio
async def test_stops_at_page_ceiling():
    rpc = PagedRpc([EventsPage(events=[event(n)], continuation_token=f"t{n}") for n in range(10)])
    fetcher = EventFetcher(rpc, chunk_size=1, max_pages=3)  # type: ignore[arg-type]

    events = await fetcher.fetch_events("0xabc", 0, 9, [1])

    assert len(events) == 3
    assert len(rpc.tokens) == 3


@pytest.mark.asyncio
async def test_log_index_counts_per_block():
    rpc = PagedRpc(
        [
            EventsPage(
                events=[event(5, "0xa"), event(5, "0xb"), event(6, "0xc"), event(5, "0xd")],
            )
        ]
    )
    fetcher = EventFetcher(rpc)  # type: ignore[arg-type]

    events = await fetcher.fetch_events("0xabc", 5, 6, [1])

    assert [(e.block_number, e.log_index, e.transaction_hash) for e in events] == [
        (5, 0, "0xa"),
        (5, 1, "0xb"),
        (6, 0, "0xc"),
        (5, 2, "0xd"),
    ]


@pytest.mark.asyncio
async def test_log_index_does_not_depend_on_batching():
    events_by_block = [event(7, "0xa"), event(7, "0xb"), event(8, "0xc")]

    whole = await EventFetcher(PagedRpc([EventsPage(events=events_by_block)])).fetch_events(  # type: ignore[arg-type]
        "0xabc", 7, 8, [1]
    )
    first = await EventFetcher(PagedRpc([EventsPage(events=events_by_block[:2])])).fetch_events(  # type: ignore[arg-type]
        "0xabc", 7, 7, [1]
    )
    second = await EventFetcher(PagedRpc([EventsPage(events=events_by_block[2:])])).fetch_events(  # type: ignore[arg-type]
        "0xabc", 8, 8, [1]
    )

    assert whole == first + second


@pytest.mark.asyncio
async def test_pending_events_skipped():
    pending = event(0)
    pending["block_number"] = None
    rpc = PagedRpc([EventsPage(events=[pending, event(9)])])

    events = await EventFetcher(rpc).fetch_events("0xabc", 9, 9, [1])  # type: ignore[arg-type]

    assert [e.block_number for e in events] == [9]

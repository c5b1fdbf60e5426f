"""Tests for ChildCountResolver."""

import pytest

from conftest import S1, S2, S3, S5, S9, TRACE_ID, FakeSpanStore
from tracetree.core.counts import ChildCountResolver
from tracetree.errors import QueryError


@pytest.mark.asyncio
async def test_missing_ids_default_to_zero(store: FakeSpanStore):
    resolver = ChildCountResolver(store)
    assert await resolver.resolve(TRACE_ID, {S2, S9}) == {S2: 1, S9: 0}


@pytest.mark.asyncio
async def test_keys_match_input_exactly(store: FakeSpanStore):
    resolver = ChildCountResolver(store)
    wanted = [S1, S3, S5, S9]
    counts = await resolver.resolve(TRACE_ID, wanted)
    assert set(counts) == set(wanted)
    assert counts[S1] == 3


@pytest.mark.asyncio
async def test_empty_input_skips_store(store: FakeSpanStore):
    resolver = ChildCountResolver(store)
    assert await resolver.resolve(TRACE_ID, []) == {}
    assert store.calls == []


@pytest.mark.asyncio
async def test_single_batched_call(store: FakeSpanStore):
    resolver = ChildCountResolver(store)
    await resolver.resolve(TRACE_ID, [S1, S2, S3, S1])
    assert store.calls == ["count_children_by_parent"]


@pytest.mark.asyncio
async def test_other_trace_counts_nothing(store: FakeSpanStore):
    resolver = ChildCountResolver(store)
    assert await resolver.resolve("ffff", [S1]) == {S1: 0}


@pytest.mark.asyncio
async def test_store_failure_propagates(store: FakeSpanStore):
    store.fail_on = "count_children_by_parent"
    resolver = ChildCountResolver(store)
    with pytest.raises(QueryError):
        await resolver.resolve(TRACE_ID, [S1])

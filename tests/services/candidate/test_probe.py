from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.candidate.policy import ConfirmationPolicy
from src.services.candidate.probe import ConfirmationProbe, entry_fingerprint, normalize_entries

FAST = ConfirmationPolicy(interval=0.01, deadline=0.1)


class TestNormalizeEntries:
    def test_sequences(self) -> None:
        assert normalize_entries([1, 2]) == [1, 2]
        assert normalize_entries((1,)) == [1]
        assert normalize_entries(None) == []
        assert normalize_entries("text") == []

    def test_wrapped_array(self) -> None:
        assert normalize_entries(SimpleNamespace(_array=[1, 2])) == [1, 2]
        assert normalize_entries({"_array": [3]}) == [3]

    def test_to_array(self) -> None:
        class Collection:
            def toArray(self):  # noqa: N802
                return [4, 5]

        assert normalize_entries(Collection()) == [4, 5]

    def test_mapping_values(self) -> None:
        assert normalize_entries({"a": 1, "b": 2}) == [1, 2]


def test_fingerprint_compares_mappings_by_value() -> None:
    assert entry_fingerprint({"nonce": "1"}) == entry_fingerprint({"nonce": "1"})
    assert entry_fingerprint({"nonce": "1"}) != entry_fingerprint({"nonce": "2"})
    obj = object()
    assert entry_fingerprint(obj) == entry_fingerprint(obj)
    assert entry_fingerprint(object()) != entry_fingerprint(obj)


@pytest.mark.asyncio
async def test_pre_existing_matching_entry_does_not_confirm() -> None:
    store = MagicMock()
    store.list_entries.return_value = [{"nonce": "n1"}]
    probe = ConfirmationProbe(store, "c1", lambda e: e["nonce"] == "n1", policy=FAST)

    baseline = await probe.baseline()

    assert baseline.count == 1
    assert not await probe.check(baseline)
    assert not await probe.wait(baseline)


@pytest.mark.asyncio
async def test_new_matching_entry_confirms() -> None:
    store = MagicMock()
    store.list_entries.side_effect = [[], [{"nonce": "other"}], [{"nonce": "other"}, {"nonce": "n1"}]]
    probe = ConfirmationProbe(store, "c1", lambda e: e["nonce"] == "n1", policy=FAST)

    baseline = await probe.baseline()

    assert await probe.wait(baseline)
    store.list_entries.assert_called_with("c1")


@pytest.mark.asyncio
async def test_growth_accepted_only_when_enabled() -> None:
    entries: list = [{"name": "x"}]
    store = SimpleNamespace(list_entries=lambda destination: list(entries))
    strict = ConfirmationProbe(store, "c1", lambda e: False, policy=FAST)
    lenient = ConfirmationProbe(store, "c1", lambda e: False, policy=FAST, accept_growth=True)

    baseline = await strict.baseline()
    entries.append({"name": "unrecognized"})

    assert not await strict.check(baseline)
    assert await lenient.check(baseline)


@pytest.mark.asyncio
async def test_async_store_read_failures_never_confirm() -> None:
    reads = [RuntimeError("offline"), [{"id": 1}], RuntimeError("offline")]
    store = SimpleNamespace(list_entries=AsyncMock(side_effect=reads))
    probe = ConfirmationProbe(store, "c1", policy=FAST, accept_growth=True)

    # the first read fails, the retry sees the entry that was already there
    baseline = await probe.baseline()

    assert baseline is not None
    assert baseline.count == 1
    assert not await probe.check(baseline)


@pytest.mark.asyncio
async def test_unreadable_baseline_is_none() -> None:
    store = SimpleNamespace(list_entries=AsyncMock(side_effect=RuntimeError("offline")))
    probe = ConfirmationProbe(store, "c1", policy=FAST, accept_growth=True)

    assert await probe.baseline() is None
    assert store.list_entries.await_count == 2


@pytest.mark.asyncio
async def test_matcher_errors_count_as_no_match() -> None:
    entries: list = []
    store = SimpleNamespace(list_entries=lambda destination: list(entries))

    def matcher(entry):
        raise KeyError("nonce")

    probe = ConfirmationProbe(store, "c1", matcher, policy=FAST)
    baseline = await probe.baseline()
    entries.append({"id": 1})

    assert not await probe.check(baseline)


@pytest.mark.asyncio
async def test_zero_deadline_never_polls() -> None:
    store = MagicMock()
    store.list_entries.return_value = []
    probe = ConfirmationProbe(store, "c1", policy=ConfirmationPolicy(interval=0.01, deadline=0))

    baseline = await probe.baseline()
    store.list_entries.reset_mock()

    assert not await probe.wait(baseline)
    store.list_entries.assert_not_called()


@pytest.mark.asyncio
async def test_wait_respects_deadline() -> None:
    store = MagicMock()
    store.list_entries.return_value = []
    probe = ConfirmationProbe(store, "c1", policy=ConfirmationPolicy(interval=0.02, deadline=0.1))
    loop = asyncio.get_running_loop()

    baseline = await probe.baseline()
    started = loop.time()
    confirmed = await probe.wait(baseline)

    assert not confirmed
    assert 0.09 <= loop.time() - started < 0.5


def test_policy_validation() -> None:
    with pytest.raises(ValueError):
        ConfirmationPolicy(interval=0, deadline=1)
    with pytest.raises(ValueError):
        ConfirmationPolicy(interval=0.1, deadline=-1)

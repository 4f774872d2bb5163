from __future__ import annotations

from src.core.discovery.query import DomainArgs
from src.services.capability.catalog import (
    FILE_QUEUE,
    FILE_QUEUE_QUERY,
    MESSAGE_DISPATCH_QUERY,
    build_file_queue_query,
    empty_message_payload,
)

ARGS = DomainArgs(
    payload={"name": "a.png"},
    destination="c1",
    destination_ref={"id": "c1"},
    type_tag=2,
    extras={"nonce": "n1"},
)


def _labels(query, key: str, arity: int | None) -> list[str]:
    return [s.label for s in query.call_shapes if s.applies_to(key, arity)]


def test_queries_are_hashable_and_stable() -> None:
    assert FILE_QUEUE_QUERY.name == FILE_QUEUE
    assert hash(FILE_QUEUE_QUERY) == hash(FILE_QUEUE_QUERY)
    # each build produces a distinct query
    assert build_file_queue_query() != FILE_QUEUE_QUERY
    assert FILE_QUEUE_QUERY.refresh_on_invoke
    assert not MESSAGE_DISPATCH_QUERY.refresh_on_invoke


def test_shapes_are_scoped_to_their_keys() -> None:
    prompt = _labels(FILE_QUEUE_QUERY, "promptToUpload", 3)
    add = _labels(FILE_QUEUE_QUERY, "addFile", 3)
    generic = _labels(FILE_QUEUE_QUERY, "uploadNow", 2)

    assert prompt[0] == "prompt(files, channel, type)"
    assert all(label.startswith(("prompt", "generic")) for label in prompt)
    assert add[0] == "add(id, type, file)"
    assert all(label.startswith(("add", "generic")) for label in add)
    assert generic == ["generic(id, files)", "generic(files, id)"]


def test_generic_shapes_need_a_leading_queue_verb() -> None:
    for key in ("clearAll", "somethingElse", "uploads", "getUploadLimit"):
        assert _labels(FILE_QUEUE_QUERY, key, 2) == [], key
    assert _labels(FILE_QUEUE_QUERY, "attach_file", 2) == ["generic(id, files)", "generic(files, id)"]


def test_dispatch_shapes_only_fit_send_message() -> None:
    assert len(_labels(MESSAGE_DISPATCH_QUERY, "sendMessage", 2)) == 2
    assert _labels(MESSAGE_DISPATCH_QUERY, "deleteMessage", 1) == []
    assert _labels(MESSAGE_DISPATCH_QUERY, "editMessage", 3) == []
    assert MESSAGE_DISPATCH_QUERY.min_score > FILE_QUEUE_QUERY.min_score > 0


def test_instant_batch_positional_shape_needs_three_args() -> None:
    assert "instant(id, files, false)" in _labels(FILE_QUEUE_QUERY, "instantBatchUpload", 3)
    assert "instant(id, files, false)" not in _labels(FILE_QUEUE_QUERY, "instantBatchUpload", 1)


def test_shape_arguments() -> None:
    by_label = {s.label: s for s in FILE_QUEUE_QUERY.call_shapes}

    assert by_label["prompt(files, channel, type)"].build(ARGS).args == ([ARGS.payload], {"id": "c1"}, 2)
    assert by_label["add(id, type, file)"].build(ARGS).args == ("c1", 2, ARGS.payload)
    (record,) = by_label["add({files})"].build(ARGS).args
    assert record == {"channelId": "c1", "draftType": 2, "files": [ARGS.payload]}


def test_dispatch_shapes_carry_nonce() -> None:
    first, second = MESSAGE_DISPATCH_QUERY.call_shapes

    assert first.build(ARGS).args == ("c1", ARGS.payload, None, {"nonce": "n1"})
    assert second.build(ARGS).args == ("c1", ARGS.payload, False, {"nonce": "n1"})


def test_empty_message_payload_is_fresh() -> None:
    first = empty_message_payload()
    first["content"] = "changed"
    assert empty_message_payload()["content"] == ""

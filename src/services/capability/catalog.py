"""
内置能力目录

每个查询只构造一次。调用形态按历史上观察到的约定排序，越常见越靠前。
"""

from __future__ import annotations

from src.core.discovery.query import CallArgs, CallShape, CapabilityQuery, DomainArgs, KnownShape

FILE_QUEUE = "file-queue"
MESSAGE_DISPATCH = "message-dispatch"


def _positional(*args: object) -> CallArgs:
    return CallArgs(args=tuple(args))


# ---------------------------------------------------------------- file queue


def _prompt_shapes() -> list[CallShape]:
    keys = frozenset({"promptToUpload"})
    return [
        CallShape(
            "prompt(files, channel, type)",
            lambda a: _positional([a.payload], a.resolved_destination, a.type_tag),
            keys=keys,
        ),
        CallShape(
            "prompt(files, channel, 0)",
            lambda a: _positional([a.payload], a.resolved_destination, 0),
            keys=keys,
        ),
        CallShape(
            "prompt(files, channel)",
            lambda a: _positional([a.payload], a.resolved_destination),
            keys=keys,
        ),
        CallShape(
            "prompt(files, id, type)",
            lambda a: _positional([a.payload], a.destination, a.type_tag),
            keys=keys,
        ),
        CallShape("prompt(files, id, 0)", lambda a: _positional([a.payload], a.destination, 0), keys=keys),
        CallShape("prompt(files, id)", lambda a: _positional([a.payload], a.destination), keys=keys),
    ]


def _add_file_shapes() -> list[CallShape]:
    keys = frozenset({"addFile"})

    def record(a: DomainArgs, **extra: object) -> CallArgs:
        return _positional({"channelId": a.destination, "draftType": a.type_tag, **extra})

    return [
        CallShape(
            "add(id, type, file)",
            lambda a: _positional(a.destination, a.type_tag, a.payload),
            keys=keys,
        ),
        CallShape(
            "add(id, file, type)",
            lambda a: _positional(a.destination, a.payload, a.type_tag),
            keys=keys,
        ),
        CallShape("add(id, file)", lambda a: _positional(a.destination, a.payload), keys=keys),
        CallShape(
            "add(channel, type, file)",
            lambda a: _positional(a.resolved_destination, a.type_tag, a.payload),
            keys=keys,
        ),
        CallShape(
            "add(channel, file, type)",
            lambda a: _positional(a.resolved_destination, a.payload, a.type_tag),
            keys=keys,
        ),
        CallShape(
            "add(channel, file)",
            lambda a: _positional(a.resolved_destination, a.payload),
            keys=keys,
        ),
        CallShape(
            "add(file, id, type)",
            lambda a: _positional(a.payload, a.destination, a.type_tag),
            keys=keys,
        ),
        CallShape("add({file})", lambda a: record(a, file=a.payload), keys=keys),
        CallShape(
            "add({channel, file})",
            lambda a: record(a, channel=a.resolved_destination, file=a.payload),
            keys=keys,
        ),
        CallShape("add({files})", lambda a: record(a, files=[a.payload]), keys=keys),
    ]


def _instant_batch_shapes() -> list[CallShape]:
    keys = frozenset({"instantBatchUpload"})
    return [
        CallShape(
            "instant(id, files, false)",
            lambda a: _positional(a.destination, [a.payload], False),
            keys=keys,
            arity=3,
        ),
        CallShape(
            "instant({files})",
            lambda a: _positional(
                {
                    "channelId": a.destination,
                    "draftType": a.type_tag,
                    "files": [a.payload],
                    "isThumbnail": False,
                    "isClip": False,
                }
            ),
            keys=keys,
        ),
    ]


def _generic_upload_shapes() -> list[CallShape]:
    # for callables found only by scanning, under names not listed above;
    # the key must lead with a queueing verb
    pattern = r"(upload|attach|queue|enqueue)(?![a-z])"
    return [
        CallShape(
            "generic(id, files)",
            lambda a: _positional(a.destination, [a.payload]),
            key_pattern=pattern,
        ),
        CallShape(
            "generic(files, id)",
            lambda a: _positional([a.payload], a.destination),
            key_pattern=pattern,
        ),
    ]


def build_file_queue_query() -> CapabilityQuery:
    return CapabilityQuery(
        name=FILE_QUEUE,
        keywords=frozenset({"upload", "attach", "file", "prompt"}),
        exact_name="promptToUpload",
        source_fragments=("UPLOAD_ATTACHMENT", "draftType"),
        known_shapes=(
            KnownShape.of("promptToUpload"),
            KnownShape.of("showUploadFileSizeExceededError", "promptToUpload"),
            KnownShape.of("showUploadDialog", "promptToUpload"),
            KnownShape.of("clearAll", "addFile"),
            KnownShape.of("upload", "instantBatchUpload"),
            KnownShape.of("instantBatchUpload"),
        ),
        call_shapes=tuple(
            _prompt_shapes() + _add_file_shapes() + _instant_batch_shapes() + _generic_upload_shapes()
        ),
        # the host's module graph can change between sessions
        refresh_on_invoke=True,
        # one keyword plus a usable arity
        min_score=60,
    )


# ---------------------------------------------------------------- message dispatch


def _dispatch_shapes() -> list[CallShape]:
    keys = frozenset({"sendMessage"})

    def nonce(a: DomainArgs) -> dict[str, object]:
        return {"nonce": a.extras.get("nonce")}

    return [
        CallShape(
            "send(id, message, undefined, {nonce})",
            lambda a: _positional(a.destination, a.payload, None, nonce(a)),
            keys=keys,
        ),
        CallShape(
            "send(id, message, false, {nonce})",
            lambda a: _positional(a.destination, a.payload, False, nonce(a)),
            keys=keys,
        ),
    ]


def build_message_dispatch_query() -> CapabilityQuery:
    return CapabilityQuery(
        name=MESSAGE_DISPATCH,
        keywords=frozenset({"send", "message"}),
        exact_name="sendMessage",
        known_shapes=(
            KnownShape.of("sendMessage", "editMessage", target="sendMessage"),
            KnownShape.of("sendMessage", "receiveMessage", target="sendMessage"),
            KnownShape.of("sendMessage"),
        ),
        call_shapes=tuple(_dispatch_shapes()),
        # needs both keywords
        min_score=100,
    )


FILE_QUEUE_QUERY = build_file_queue_query()
MESSAGE_DISPATCH_QUERY = build_message_dispatch_query()


def empty_message_payload() -> dict[str, object]:
    return {
        "content": "",
        "tts": False,
        "invalidEmojis": [],
        "validNonShortcutEmojis": [],
    }


__all__ = [
    "FILE_QUEUE",
    "FILE_QUEUE_QUERY",
    "MESSAGE_DISPATCH",
    "MESSAGE_DISPATCH_QUERY",
    "build_file_queue_query",
    "build_message_dispatch_query",
    "empty_message_payload",
]

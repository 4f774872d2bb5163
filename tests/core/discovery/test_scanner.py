"""
注册表扫描单元测试

覆盖重点：
- known-shape / known-path 直接命中
- instantiated 模块的准入条件
- lazy 模块只求值命中密度最高的前 N 个
- 单个模块失败不会中断扫描
"""

from __future__ import annotations

import json
from types import SimpleNamespace

from src.core.discovery.query import CapabilityQuery, KnownShape
from src.core.discovery.registry import InMemoryModuleRegistry
from src.core.discovery.scanner import (
    STREAM_INSTANTIATED,
    STREAM_KNOWN_PATH,
    STREAM_KNOWN_SHAPE,
    STREAM_LAZY,
    RegistryScanner,
    ScanPolicy,
    hint_density,
)

QUERY = CapabilityQuery(
    name="scan-test",
    keywords=frozenset({"upload"}),
    exact_name="promptToUpload",
    known_shapes=(KnownShape.of("showUploadDialog", "promptToUpload"),),
)


def _scanner(reg: InMemoryModuleRegistry, **policy) -> RegistryScanner:
    return RegistryScanner(reg, ScanPolicy(**policy))


def _keys(report, path: str | None = None) -> list[str]:
    return [d.key for d in report.discoveries if path is None or d.path == path]


class TestKnownShapeStream:
    def test_direct_hit(self) -> None:
        def prompt(files, channel):
            return None

        ui = SimpleNamespace(showUploadDialog=lambda: None, promptToUpload=prompt)
        reg = InMemoryModuleRegistry()
        reg.register_exports("ui", ui)

        report = _scanner(reg).scan(QUERY)

        direct = [d for d in report.discoveries if d.direct]
        assert len(direct) == 1
        assert direct[0].key == "promptToUpload"
        assert direct[0].func is prompt
        assert direct[0].context is ui
        assert direct[0].path == STREAM_KNOWN_SHAPE
        assert report.roots[STREAM_KNOWN_SHAPE] == 1

    def test_known_path(self) -> None:
        def send(payload):
            return None

        uploader = SimpleNamespace(send=send)
        reg = InMemoryModuleRegistry()
        reg.register_exports("tools", {"uploader": uploader})
        query = CapabilityQuery(name="path-test", known_path="tools:uploader.send")

        report = _scanner(reg).scan(query)

        (hit,) = [d for d in report.discoveries if d.path == STREAM_KNOWN_PATH]
        assert hit.direct
        assert hit.func is send
        assert hit.context is uploader

    def test_lookup_failure_is_counted(self) -> None:
        class FlakyRegistry(InMemoryModuleRegistry):
            def find_by_props(self, *props):
                raise RuntimeError("lookup exploded")

        report = _scanner(FlakyRegistry()).scan(QUERY)

        assert report.failures == 1
        assert report.discoveries == []


class TestInstantiatedStream:
    def test_admits_by_shallow_keys_only(self) -> None:
        def upload_now(files):
            return None

        def render(text):
            return None

        reg = InMemoryModuleRegistry()
        reg.register_exports("queue", {"uploadNow": upload_now})
        reg.register_exports("other", {"render": render})

        report = _scanner(reg).scan(QUERY)

        assert "uploadNow" in _keys(report, STREAM_INSTANTIATED)
        assert "render" not in _keys(report)
        assert report.roots[STREAM_INSTANTIATED] == 1

    def test_admits_by_factory_source(self) -> None:
        def queue_fn(channel, files):
            return None

        def opaque_factory():
            # wires the upload queue
            return {"a": SimpleNamespace(uploadNow=queue_fn)}

        reg = InMemoryModuleRegistry()
        reg.register("opaque", opaque_factory, evaluated=True)

        report = _scanner(reg).scan(QUERY)

        assert "uploadNow" in _keys(report, STREAM_INSTANTIATED)
        assert report.roots[STREAM_INSTANTIATED] == 1

    def test_unrelated_callables_are_ignored(self) -> None:
        def clear_all(channel_id):
            return None

        reg = InMemoryModuleRegistry()
        reg.register_exports("drafts", {"uploadNow": lambda f: None, "clearAll": clear_all})

        report = _scanner(reg).scan(QUERY)

        assert _keys(report) == ["uploadNow"]
        assert report.ignored == 1

    def test_source_fragment_keeps_opaquely_named_callable(self) -> None:
        def opaque(channel, payload):
            return {"kind": "UPLOAD_ATTACHMENT", "payload": payload}

        query = CapabilityQuery(
            name="fragment-test",
            keywords=frozenset({"upload"}),
            source_fragments=("UPLOAD_ATTACHMENT",),
        )
        reg = InMemoryModuleRegistry()
        reg.register_exports("queue", {"uploadNow": lambda f: None, "q": opaque})

        report = _scanner(reg).scan(query)

        assert sorted(_keys(report)) == ["q", "uploadNow"]
        assert report.ignored == 0

    def test_imported_modules_are_not_expanded(self) -> None:
        reg = InMemoryModuleRegistry()
        reg.register_exports("queue", {"uploadNow": lambda f: None, "json": json})

        report = _scanner(reg).scan(QUERY)

        assert "uploadNow" in _keys(report)
        assert "dumps" not in _keys(report)

    def test_classes_are_not_candidates(self) -> None:
        class UploadTask:
            pass

        reg = InMemoryModuleRegistry()
        reg.register_exports("queue", {"UploadTask": UploadTask, "uploadNow": lambda f: None})

        report = _scanner(reg).scan(QUERY)

        assert "UploadTask" not in _keys(report)

    def test_node_budget_is_shared_across_roots(self) -> None:
        reg = InMemoryModuleRegistry()
        reg.register_exports("a", {"uploadA": lambda f: None})
        reg.register_exports("b", {"uploadB": lambda f: None})

        report = _scanner(reg, max_nodes=1).scan(QUERY)

        assert report.nodes_visited == 1
        assert report.truncated
        assert _keys(report) == ["uploadA"]


class TestLazyStream:
    def test_only_top_n_by_density_are_evaluated(self) -> None:
        reg = InMemoryModuleRegistry()
        reg.register("sparse", lambda: {"x": lambda f: None}, source="upload" + " " * 5000)
        reg.register("dense", lambda: {"uploadDense": lambda f: None}, source="upload upload upload")
        reg.register("unrelated", lambda: {"y": lambda f: None}, source="render only")

        report = _scanner(reg, lazy_eval_top_n=1).scan(QUERY)

        assert reg.evaluation_log == ["dense"]
        assert report.evaluated == ["dense"]
        assert "uploadDense" in _keys(report, STREAM_LAZY)

    def test_failing_factory_does_not_abort(self) -> None:
        def boom():
            raise RuntimeError("side effect failed")

        reg = InMemoryModuleRegistry()
        reg.register("boom", boom, source="upload upload upload upload")
        reg.register("ok", lambda: {"uploadOk": lambda f: None}, source="upload")

        report = _scanner(reg).scan(QUERY)

        assert report.failures == 1
        assert report.evaluated == ["ok"]
        assert "uploadOk" in _keys(report)


def test_hint_density_weights_fragments() -> None:
    query = CapabilityQuery(name="d", keywords=frozenset({"upload"}), source_fragments=("draftType",))
    assert hint_density("", query) == 0.0
    assert hint_density("nothing here", query) == 0.0
    assert hint_density("draftType", query) > hint_density("upload", query)

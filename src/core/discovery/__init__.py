"""
能力发现核心模块

不依赖 services 层，负责"在未知对象图里找到可能实现某能力的可调用对象"：
- query.py: 能力查询 / 调用形态定义
- introspect.py: 元数据读取（参数个数、源码、身份）
- scorer.py: 候选打分（纯函数）
- walker.py: 有界广度优先遍历
- registry.py: 宿主模块注册表接口与实现
- scanner.py: 三路扫描（known-shape / instantiated / lazy）
"""

from src.core.discovery.introspect import callable_identity, positional_arity, printed_source
from src.core.discovery.query import CallArgs, CallShape, CapabilityQuery, DomainArgs, KnownShape
from src.core.discovery.registry import (
    BaseModuleRegistry,
    InMemoryModuleRegistry,
    ModuleDescriptor,
    ModuleRegistry,
    PythonModuleRegistry,
)
from src.core.discovery.scanner import Discovery, RegistryScanner, ScanPolicy, ScanReport
from src.core.discovery.scorer import DIRECT_HIT_BOOST, score_candidate
from src.core.discovery.walker import WalkStats, walk

__all__ = [
    # query
    "CallArgs",
    "CallShape",
    "CapabilityQuery",
    "DomainArgs",
    "KnownShape",
    # introspection
    "callable_identity",
    "positional_arity",
    "printed_source",
    # scoring / walking
    "DIRECT_HIT_BOOST",
    "score_candidate",
    "WalkStats",
    "walk",
    # registry / scan
    "BaseModuleRegistry",
    "InMemoryModuleRegistry",
    "ModuleDescriptor",
    "ModuleRegistry",
    "PythonModuleRegistry",
    "Discovery",
    "RegistryScanner",
    "ScanPolicy",
    "ScanReport",
]

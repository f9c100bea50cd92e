"""
opfuse - 推理运行时的图融合优化模块

在算子下发执行之前，将程序中的算子链（conv -> add -> bn -> relu 等）
融合为单个融合算子，支持：
- 从有序算子列表构建节点图
- 基于模板的有界深度子图匹配
- 原地改写并保持拓扑顺序
- 失败时回退到原程序执行
"""

from opfuse.program import OpDesc, VarDesc, BlockDesc, ProgramDesc
from opfuse.errors import FusionError, UnknownOperatorType, UnsupportedMultiBlock, TemplateError
from opfuse.op_registry import OpInfo, OpRegistry, default_registry
from opfuse.fusion_config import FusionConfig
from opfuse.graph import GraphNode, NodeArena
from opfuse.graph_builder import GraphBuilder, BuiltGraph
from opfuse.pattern import PatternNode, FusionTemplate, pattern, chain, pattern_equal
from opfuse.catalog import FusionCatalog, default_catalog
from opfuse.matcher import PatternMatcher, prefix_copy
from opfuse.rewriter import GraphRewriter
from opfuse.optimizer import ProgramOptimizer, optimize_program

__version__ = "0.1.0"

__all__ = [
    "OpDesc",
    "VarDesc",
    "BlockDesc",
    "ProgramDesc",
    "FusionError",
    "UnknownOperatorType",
    "UnsupportedMultiBlock",
    "TemplateError",
    "OpInfo",
    "OpRegistry",
    "default_registry",
    "FusionConfig",
    "GraphNode",
    "NodeArena",
    "GraphBuilder",
    "BuiltGraph",
    "PatternNode",
    "FusionTemplate",
    "pattern",
    "chain",
    "pattern_equal",
    "FusionCatalog",
    "default_catalog",
    "PatternMatcher",
    "prefix_copy",
    "GraphRewriter",
    "ProgramOptimizer",
    "optimize_program",
]

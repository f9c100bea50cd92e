"""
程序优化器模块 - 融合优化的编排入口

流程：
1. 结构校验：只支持单 Block 程序
2. GraphBuilder 一次性建图（节点包装算子副本，输入程序始终不被修改）
3. 按目录顺序遍历模板，对每个模板在匹配前快照候选列表，逐个匹配并改写
4. 过滤被吸收的节点，按原相对顺序重新组装新的 ProgramDesc

结构性错误（未知算子、多 Block）在任何改写之前抛出；
optimize_or_fallback 按配置回退到原程序。
"""

import logging
from typing import Any, Dict, List, Optional, Set

from opfuse.catalog import FusionCatalog, default_catalog
from opfuse.errors import FusionError, UnsupportedMultiBlock
from opfuse.fusion_config import FusionConfig
from opfuse.graph_builder import BuiltGraph, GraphBuilder
from opfuse.matcher import PatternMatcher
from opfuse.op_registry import OpRegistry, default_registry
from opfuse.program import BlockDesc, OpDesc, ProgramDesc
from opfuse.rewriter import GraphRewriter

logger = logging.getLogger(__name__)


class ProgramOptimizer:
    """
    程序级融合优化器

    核心职责：
    1. 建图并按类型分组候选节点
    2. 依次运行目录中的每个融合模板
    3. 重新组装存活算子
    4. 提供回退到原程序的能力

    Example:
        >>> optimizer = ProgramOptimizer(config=FusionConfig(debug_mode=True))
        >>> optimized = optimizer.optimize(program)
        >>> [op.type for op in optimized.blocks[0].ops]
        ['feed', 'conv_add_batchnorm_relu', 'fetch']
    """

    def __init__(
        self,
        registry: Optional[OpRegistry] = None,
        catalog: Optional[FusionCatalog] = None,
        config: Optional[FusionConfig] = None,
    ):
        self.config = config or FusionConfig()
        self.registry = registry or default_registry()
        self.catalog = catalog or default_catalog(max_depth=self.config.max_pattern_depth)
        self._builder = GraphBuilder(self.registry)
        self._matcher = PatternMatcher(self.config)
        self._rewriter = GraphRewriter(self.config)
        self._stats: Dict[str, Any] = {}
        self.clear_stats()

    def optimize(self, program: ProgramDesc) -> ProgramDesc:
        """
        优化程序，返回新的 ProgramDesc。

        Raises:
            UnsupportedMultiBlock: 程序 Block 数不为 1
            UnknownOperatorType: 注册表缺少某个算子类型
        """
        if len(program.blocks) != 1:
            raise UnsupportedMultiBlock(len(program.blocks))

        block = program.blocks[0]
        built = self._builder.build(block)
        self._stats["runs"] += 1

        removed: Set[int] = set()
        if self.config.enable_fusion:
            removed = self._run_templates(built)
        elif self.config.debug_mode:
            logger.debug("[Fusion] Fusion disabled, reassembling program unchanged")

        ops: List[OpDesc] = [node.op_desc for node in built.arena if node.index not in removed]
        self._stats["removed_ops"] += len(removed)

        logger.info(
            "Optimized program: %d ops -> %d ops", len(block.ops), len(ops)
        )
        return ProgramDesc(blocks=[BlockDesc(vars=block.vars, ops=ops)])

    def optimize_or_fallback(self, program: ProgramDesc) -> ProgramDesc:
        """
        优化程序；失败时按 fallback_on_error 回退到原程序。
        """
        try:
            return self.optimize(program)
        except FusionError as e:
            if not self.config.fallback_on_error:
                raise
            self._stats["fallbacks"] += 1
            logger.warning("[Fusion] Optimization failed, running unoptimized program: %s", e)
            return program

    def _run_templates(self, built: BuiltGraph) -> Set[int]:
        removed: Set[int] = set()

        for template in self.catalog:
            if template.name in self.config.disabled_patterns:
                if self.config.debug_mode:
                    logger.debug("[Fusion] Skip: template '%s' disabled", template.name)
                continue

            # 快照候选列表：同一模板本轮的改写互不干扰
            for index in built.candidates(template.trigger_type):
                if index in removed:
                    continue
                if not self._matcher.matches(built.arena, index, template):
                    continue

                removed |= self._rewriter.fuse(built.arena, index, template)
                fused = self._stats["fused"]
                fused[template.name] = fused.get(template.name, 0) + 1

        return removed

    def get_stats(self) -> Dict[str, Any]:
        """获取统计信息"""
        return {
            "runs": self._stats["runs"],
            "fallbacks": self._stats["fallbacks"],
            "removed_ops": self._stats["removed_ops"],
            "fused": dict(self._stats["fused"]),
        }

    def clear_stats(self):
        self._stats = {
            "runs": 0,
            "fallbacks": 0,
            "removed_ops": 0,
            "fused": {},
        }


def optimize_program(
    program: ProgramDesc,
    registry: Optional[OpRegistry] = None,
    catalog: Optional[FusionCatalog] = None,
    config: Optional[FusionConfig] = None,
) -> ProgramDesc:
    """使用一次性优化器优化程序"""
    return ProgramOptimizer(registry, catalog, config).optimize(program)

"""
图改写模块 - 将匹配到的算子链吸收进根节点

改写过程从根节点开始，沿匹配链自顶向下与模板节点逐位置配对：
1. 合并当前节点的属性和参数到根节点（按模板重命名表改键），
   根节点最先写入，越靠近叶子的节点在键冲突时越晚写入、越优先
2. 到达模板叶子：根节点的后继边和输出槽位替换为该真实节点的后继边和输出槽位，
   并把这些后继的前驱边从被吸收节点改连到根节点
3. 否则继续向下递归

根节点以外访问到的节点全部进入删除集合。链外存活节点指向被删除节点的边会被摘除，
被删除节点自身保留过期的边，但之后不会再被遍历。
"""

import logging
from typing import Dict, List, Set

from opfuse.fusion_config import FusionConfig
from opfuse.graph import GraphNode, NodeArena
from opfuse.pattern import FusionTemplate, PatternNode

logger = logging.getLogger(__name__)


class GraphRewriter:
    """
    融合改写器（原地修改根节点）

    Example:
        >>> rewriter = GraphRewriter()
        >>> removed = rewriter.fuse(built.arena, 0, create_conv_add_pattern())
        >>> built.arena[0].op_type
        'conv_add'
    """

    def __init__(self, config: FusionConfig = None):
        self.config = config or FusionConfig()

    def fuse(self, arena: NodeArena, index: int, template: FusionTemplate) -> Set[int]:
        """
        将以 index 为根的匹配链融合为 template.fused_type。

        调用方需保证 PatternMatcher.matches 已返回 True。

        Returns:
            被吸收（应从程序中删除）的节点下标集合
        """
        root = arena[index]
        removed: Set[int] = set()

        attrs: Dict = {}
        params: Dict[str, List[str]] = {}
        self._merge(root, template, attrs, params)

        # 单节点模板只改写类型，保留原有输出
        if not template.root.is_leaf:
            successors = list(root.outputs)
            root.outputs = []
            root.op_desc.outputs = {}

            for succ, child in zip(successors, template.root.outputs):
                self._absorb(arena, root, succ, child, template, attrs, params, removed)

            self._detach(arena, index, removed)

        root.op_desc.attrs = attrs
        root.op_desc.params = params
        root.op_desc.type = template.fused_type
        root.op_type = template.fused_type

        if self.config.debug_mode:
            logger.debug(
                "[Fusion] Fused node #%d into '%s', removed %s",
                index, template.fused_type, sorted(removed),
            )
        return removed

    def _absorb(
        self,
        arena: NodeArena,
        root: GraphNode,
        index: int,
        match: PatternNode,
        template: FusionTemplate,
        attrs: Dict,
        params: Dict[str, List[str]],
        removed: Set[int],
    ):
        node = arena[index]
        self._merge(node, template, attrs, params)
        removed.add(index)

        if match.is_leaf:
            # 逐条边搬移，保持与前驱边一一对应
            root.outputs.extend(node.outputs)
            for succ in dict.fromkeys(node.outputs):
                consumer = arena[succ]
                consumer.inputs = [root.index if i == index else i for i in consumer.inputs]
            # 分支模板的多个叶子写同一槽位时按访问顺序拼接
            for slot, names in node.op_desc.outputs.items():
                merged = root.op_desc.outputs.setdefault(slot, [])
                merged.extend(name for name in names if name not in merged)
            return

        for succ, child in zip(node.outputs, match.outputs):
            self._absorb(arena, root, succ, child, template, attrs, params, removed)

    @staticmethod
    def _detach(arena: NodeArena, root_index: int, removed: Set[int]):
        """删除链外存活前驱指向被吸收节点的边，被删除节点不会再被其他模板遍历到"""
        for index in removed:
            for pred in dict.fromkeys(arena[index].inputs):
                if pred == root_index or pred in removed:
                    continue
                node = arena[pred]
                node.outputs = [i for i in node.outputs if i != index]

    def _merge(
        self,
        node: GraphNode,
        template: FusionTemplate,
        attrs: Dict,
        params: Dict[str, List[str]],
    ):
        # 按原始类型查重命名表，根节点此时尚未改写类型
        op_type = node.op_desc.type
        for key, value in node.op_desc.attrs.items():
            attrs[template.rename_key(op_type, key)] = value
        for slot, names in node.op_desc.params.items():
            params[template.rename_key(op_type, slot)] = list(names)

"""
Graph 构建模块 - 将 Block 的有序算子列表转换为节点图

连边规则：
1. 维护 张量名 -> 最近一次写入该张量的节点
2. 按程序顺序处理每个算子：先按声明的输入槽位连边，再登记输出槽位
3. 同名张量被多次写入时，后续消费者连到最后一个写入者（last-writer-wins）

由于连边只会指向已经构建的节点，得到的图一定是 DAG。
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from opfuse.graph import NodeArena
from opfuse.op_registry import OpRegistry, default_registry
from opfuse.program import BlockDesc

logger = logging.getLogger(__name__)


@dataclass
class BuiltGraph:
    """
    GraphBuilder 的输出

    Attributes:
        arena: 节点池，下标顺序与原程序算子顺序一致
        type_groups: 算子类型 -> 该类型节点下标列表（保持程序顺序）
    """
    arena: NodeArena
    type_groups: Dict[str, List[int]]

    def candidates(self, op_type: str) -> List[int]:
        return list(self.type_groups.get(op_type, ()))


class GraphBuilder:
    """
    从 BlockDesc 构建节点图

    Example:
        >>> built = GraphBuilder().build(block)
        >>> [node.op_type for node in built.arena]
        ['conv2d', 'elementwise_add', 'batch_norm', 'relu']
    """

    def __init__(self, registry: OpRegistry = None):
        self.registry = registry or default_registry()

    def build(self, block: BlockDesc) -> BuiltGraph:
        """
        构建节点图。

        节点包装的是算子的副本，后续改写不会影响输入 block。

        Raises:
            UnknownOperatorType: 注册表缺少某个算子类型
        """
        # 先整体校验，保证报错时没有任何中间状态
        infos = [self.registry.lookup(op.type) for op in block.ops]

        arena = NodeArena()
        type_groups: Dict[str, List[int]] = {}
        producers: Dict[str, int] = {}

        for op, info in zip(block.ops, infos):
            index = arena.add(op.clone())

            for slot in info.inputs:
                for name in op.inputs.get(slot, ()):
                    producer = producers.get(name)
                    if producer is not None:
                        arena.connect(producer, index)

            for slot in info.outputs:
                for name in op.outputs.get(slot, ()):
                    producers[name] = index

            type_groups.setdefault(op.type, []).append(index)

        logger.debug("Built graph with %d nodes, %d op types", len(arena), len(type_groups))
        return BuiltGraph(arena=arena, type_groups=type_groups)

"""
节点图模块 - 以下标寻址的节点池（arena）

节点之间只保存下标，不互相持有引用，前驱/后继可以双向遍历。
节点身份即下标。
"""

from dataclasses import dataclass, field
from typing import Iterator, List

from opfuse.program import OpDesc


@dataclass
class GraphNode:
    """
    图节点，包装一个 OpDesc

    Attributes:
        index: 在 NodeArena 中的下标
        op_type: 当前算子类型，融合后会被改写为融合类型
        op_desc: 被包装的算子描述（优化器持有的副本）
        inputs: 前驱节点下标（有序）
        outputs: 后继节点下标（有序）
    """
    index: int
    op_type: str
    op_desc: OpDesc
    inputs: List[int] = field(default_factory=list)
    outputs: List[int] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"GraphNode(#{self.index} {self.op_type}, in={self.inputs}, out={self.outputs})"


class NodeArena:
    """节点池：按程序顺序存放 GraphNode"""

    def __init__(self):
        self._nodes: List[GraphNode] = []

    def add(self, op_desc: OpDesc) -> int:
        index = len(self._nodes)
        self._nodes.append(GraphNode(index=index, op_type=op_desc.type, op_desc=op_desc))
        return index

    def connect(self, producer: int, consumer: int):
        """
        连接 producer -> consumer。

        每个张量名各连一条边：消费者读取同一生产者的多个张量时两节点之间有多条边，
        生产者的输出元数随之增加。
        """
        self._nodes[producer].outputs.append(consumer)
        self._nodes[consumer].inputs.append(producer)

    def successors(self, index: int) -> List[GraphNode]:
        return [self._nodes[i] for i in self._nodes[index].outputs]

    def predecessors(self, index: int) -> List[GraphNode]:
        return [self._nodes[i] for i in self._nodes[index].inputs]

    def __getitem__(self, index: int) -> GraphNode:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes)

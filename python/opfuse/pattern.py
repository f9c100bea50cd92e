"""
融合模式表示模块 - 只携带类型名的模式树 + 融合模板

设计原则：
1. 不可变：frozen dataclass，模板在导入/注册时创建，进程内长期复用
2. 数据驱动：模板是普通值（模式树 + 重命名表 + 融合类型名），
   匹配/改写逻辑对所有模板通用
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from opfuse.errors import TemplateError

# 被吸收算子类型 -> ((原键, 新键), ...)
RenameTable = Mapping[str, Tuple[Tuple[str, str], ...]]


@dataclass(frozen=True)
class PatternNode:
    """
    模式节点（只含类型名和后继）

    既用于模板，也用于候选节点的前缀影子树。

    Attributes:
        op_type: 算子类型
        outputs: 有序后继模式节点；空元组表示叶子
    """
    op_type: str
    outputs: Tuple["PatternNode", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.outputs

    def depth(self) -> int:
        """从本节点到最深叶子的链长（节点数），叶子为 1"""
        if not self.outputs:
            return 1
        return 1 + max(child.depth() for child in self.outputs)

    def __repr__(self) -> str:
        if not self.outputs:
            return self.op_type
        return f"{self.op_type} -> ({', '.join(repr(c) for c in self.outputs)})"


def pattern(op_type: str, *outputs: PatternNode) -> PatternNode:
    """构造带分支的模式节点"""
    return PatternNode(op_type, tuple(outputs))


def chain(*op_types: str) -> PatternNode:
    """
    构造线性模式链

    Example:
        >>> chain("conv2d", "elementwise_add", "relu")
        conv2d -> (elementwise_add -> (relu))
    """
    if not op_types:
        raise TemplateError("chain() requires at least one op type")
    node = PatternNode(op_types[-1])
    for op_type in reversed(op_types[:-1]):
        node = PatternNode(op_type, (node,))
    return node


def pattern_equal(lhs: PatternNode, rhs: PatternNode) -> bool:
    """
    模式相等：类型名相同、后继个数相同、后继逐位置模式相等。

    不比较输入和属性。
    """
    if lhs.op_type != rhs.op_type:
        return False
    if len(lhs.outputs) != len(rhs.outputs):
        return False
    return all(pattern_equal(l, r) for l, r in zip(lhs.outputs, rhs.outputs))


def _freeze_rename(rename: Mapping[str, Iterable[Sequence[str]]]) -> RenameTable:
    frozen: Dict[str, Tuple[Tuple[str, str], ...]] = {}
    for op_type, pairs in rename.items():
        items = []
        for pair in pairs:
            if len(pair) != 2:
                raise TemplateError(f"Rename entry for '{op_type}' must be (from, to), got {pair!r}")
            items.append((str(pair[0]), str(pair[1])))
        frozen[op_type] = tuple(items)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class FusionTemplate:
    """
    融合模板

    Attributes:
        name: 模板名，用于禁用开关和统计
        root: 模式树根节点，其类型即触发类型
        fused_type: 融合后的算子类型
        rename: 被吸收算子类型 -> 属性/参数键重命名对
        depth: 模式树最长链（构造时计算一次）

    Example:
        >>> template = FusionTemplate(
        ...     name="conv_add",
        ...     root=chain("conv2d", "elementwise_add"),
        ...     fused_type="conv_add",
        ...     rename={"elementwise_add": [("Y", "Bias")]},
        ... )
        >>> template.depth
        2
    """
    name: str
    root: PatternNode
    fused_type: str
    rename: RenameTable = field(default_factory=dict)
    depth: int = field(init=False)

    def __post_init__(self):
        if not self.name:
            raise TemplateError("Fusion template requires a name")
        if not self.fused_type:
            raise TemplateError(f"Fusion template '{self.name}' requires a fused type")
        object.__setattr__(self, "rename", _freeze_rename(self.rename))
        object.__setattr__(self, "depth", self.root.depth())

    @property
    def trigger_type(self) -> str:
        return self.root.op_type

    def rename_key(self, op_type: str, key: str) -> str:
        """按重命名表映射被吸收算子的键，没有对应条目时原样返回"""
        for src, dst in self.rename.get(op_type, ()):
            if src == key:
                return dst
        return key

    def __hash__(self) -> int:
        return hash((self.name, self.root, self.fused_type))

    def __repr__(self) -> str:
        return f"FusionTemplate({self.name}: {self.root!r} => {self.fused_type}, depth={self.depth})"

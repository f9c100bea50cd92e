"""
程序描述模块 - 优化器输入/输出的内存表示

结构层次：ProgramDesc -> BlockDesc -> OpDesc / VarDesc

设计原则：
1. OpDesc 可变：仅在改写阶段被修改（属性合并、槽位替换、类型重命名），
   且改写只作用于克隆出来的副本
2. VarDesc 不可变：优化前后原样复用
3. 提供 to_dict / from_dict，便于 JSON 导出和脚本调试
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

# 属性值：数值/字符串/布尔，或者它们的列表
AttrValue = Union[int, float, str, bool, List[Any]]

# 槽位名 -> 张量名列表（保持插入顺序）
SlotMap = Dict[str, List[str]]


@dataclass
class OpDesc:
    """
    算子描述

    Attributes:
        type: 算子类型（如 "conv2d", "relu"）
        inputs: 输入槽位 -> 张量名列表，参与建图
        outputs: 输出槽位 -> 张量名列表，参与建图
        attrs: 算子属性
        params: 参数槽位（Filter/Scale/Mean 等持久化权重），不参与建图

    Example:
        >>> op = OpDesc(
        ...     type="relu",
        ...     inputs={"X": ["v0"]},
        ...     outputs={"Out": ["v1"]},
        ... )
    """
    type: str
    inputs: SlotMap = field(default_factory=dict)
    outputs: SlotMap = field(default_factory=dict)
    attrs: Dict[str, AttrValue] = field(default_factory=dict)
    params: SlotMap = field(default_factory=dict)

    def clone(self) -> "OpDesc":
        """深拷贝，改写只在副本上进行"""
        return copy.deepcopy(self)

    def input_names(self) -> List[str]:
        return [name for names in self.inputs.values() for name in names]

    def output_names(self) -> List[str]:
        return [name for names in self.outputs.values() for name in names]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "inputs": copy.deepcopy(self.inputs),
            "outputs": copy.deepcopy(self.outputs),
            "attrs": copy.deepcopy(self.attrs),
            "params": copy.deepcopy(self.params),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpDesc":
        return cls(
            type=data["type"],
            inputs={k: list(v) for k, v in data.get("inputs", {}).items()},
            outputs={k: list(v) for k, v in data.get("outputs", {}).items()},
            attrs=dict(data.get("attrs", {})),
            params={k: list(v) for k, v in data.get("params", {}).items()},
        )

    def __repr__(self) -> str:
        return f"OpDesc({self.type}, inputs={self.inputs}, outputs={self.outputs})"


@dataclass(frozen=True)
class VarDesc:
    """变量描述（不可变）"""
    name: str
    dtype: str = "float32"
    shape: Tuple[int, ...] = ()
    persistable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dtype": self.dtype,
            "shape": list(self.shape),
            "persistable": self.persistable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VarDesc":
        return cls(
            name=data["name"],
            dtype=data.get("dtype", "float32"),
            shape=tuple(data.get("shape", ())),
            persistable=bool(data.get("persistable", False)),
        )


@dataclass
class BlockDesc:
    """
    Block 描述：变量集合 + 有序算子列表
    """
    vars: Tuple[VarDesc, ...] = ()
    ops: List[OpDesc] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ops)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vars": [var.to_dict() for var in self.vars],
            "ops": [op.to_dict() for op in self.ops],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockDesc":
        return cls(
            vars=tuple(VarDesc.from_dict(v) for v in data.get("vars", [])),
            ops=[OpDesc.from_dict(op) for op in data.get("ops", [])],
        )


@dataclass
class ProgramDesc:
    """
    程序描述：有序 Block 列表

    优化器只支持单 Block 程序，多 Block 由 ProgramOptimizer 报错。
    """
    blocks: List[BlockDesc] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"blocks": [block.to_dict() for block in self.blocks]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgramDesc":
        return cls(blocks=[BlockDesc.from_dict(b) for b in data.get("blocks", [])])

    def __repr__(self) -> str:
        return f"ProgramDesc(blocks={len(self.blocks)}, ops={[len(b) for b in self.blocks]})"

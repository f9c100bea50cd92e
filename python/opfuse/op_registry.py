"""
算子槽位注册表

记录每种算子类型声明的输入/输出槽位名。GraphBuilder 只沿着这里声明的
槽位连边；参数槽位（Filter、Scale 等）不在表中，因此不会产生边。

对优化器而言注册表是只读的外部服务，查询失败抛出 UnknownOperatorType。
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple

from opfuse.errors import UnknownOperatorType


@dataclass(frozen=True)
class OpInfo:
    """算子的有序输入/输出槽位名"""
    inputs: Tuple[str, ...]
    outputs: Tuple[str, ...]


# -----------------------------------------------------------------------------
# 默认算子表
# -----------------------------------------------------------------------------

DEFAULT_OP_INFOS: Dict[str, OpInfo] = {
    # ---- io ----
    "feed": OpInfo(("X",), ("Out",)),
    "fetch": OpInfo(("X",), ("Out",)),

    # ---- conv ----
    "conv2d": OpInfo(("Input",), ("Output",)),
    "depthwise_conv2d": OpInfo(("Input",), ("Output",)),
    "conv2d_transpose": OpInfo(("Input",), ("Output",)),

    # ---- elementwise / norm / activation ----
    "elementwise_add": OpInfo(("X",), ("Out",)),
    "batch_norm": OpInfo(("X",), ("Y",)),
    "relu": OpInfo(("X",), ("Out",)),
    "sigmoid": OpInfo(("X",), ("Out",)),
    "softmax": OpInfo(("X",), ("Out",)),

    # ---- shape / layout ----
    "pool2d": OpInfo(("X",), ("Out",)),
    "reshape": OpInfo(("X",), ("Out",)),
    "transpose": OpInfo(("X",), ("Out",)),
    "concat": OpInfo(("X",), ("Out",)),

    # ---- detection ----
    "prior_box": OpInfo(("Input", "Image"), ("Boxes", "Variances")),
    "box_coder": OpInfo(("PriorBox", "PriorBoxVar", "TargetBox"), ("OutputBox",)),
    "multiclass_nms": OpInfo(("BBoxes", "Scores"), ("Out",)),

    # ---- fused ----
    "conv_add_batchnorm_relu": OpInfo(("Input",), ("Out",)),
    "conv_add": OpInfo(("Input",), ("Out",)),
    "conv_bn_relu": OpInfo(("Input",), ("Out",)),
    "dwconv_bn_relu": OpInfo(("Input",), ("Out",)),
}


class OpRegistry:
    """
    算子类型 -> OpInfo 映射

    Example:
        >>> registry = OpRegistry()
        >>> registry.lookup("relu").inputs
        ('X',)
        >>> registry.register("gelu", inputs=("X",), outputs=("Out",))
    """

    def __init__(self, infos: Optional[Dict[str, OpInfo]] = None):
        self._infos: Dict[str, OpInfo] = dict(DEFAULT_OP_INFOS if infos is None else infos)

    def register(self, op_type: str, inputs: Iterable[str], outputs: Iterable[str]):
        """注册（或覆盖）一个算子类型的槽位信息"""
        self._infos[op_type] = OpInfo(tuple(inputs), tuple(outputs))

    def lookup(self, op_type: str) -> OpInfo:
        info = self._infos.get(op_type)
        if info is None:
            raise UnknownOperatorType(op_type)
        return info

    def __contains__(self, op_type: str) -> bool:
        return op_type in self._infos

    def __iter__(self) -> Iterator[str]:
        return iter(self._infos)

    def __len__(self) -> int:
        return len(self._infos)


def default_registry() -> OpRegistry:
    """返回包含默认算子表的新注册表"""
    return OpRegistry()

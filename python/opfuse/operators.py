"""
参考算子模块 - 基于 torch.nn.functional 的算子实现

每个算子是一个带 OperatorKind 标签的普通值，提供两种能力：
- infer_shape(op, shapes): 根据输入形状写入输出形状
- run(op, scope): 从作用域读取张量，计算后写回输出张量

用于未优化程序的回退执行，以及校验融合前后的计算结果一致。
融合算子复用单算子的计算函数，按融合后的（重命名过的）参数键取值。
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, Tuple

import torch
import torch.nn.functional as F

from opfuse.errors import UnknownOperatorType
from opfuse.program import OpDesc

Scope = Dict[str, torch.Tensor]
ShapeMap = Dict[str, Tuple[int, ...]]


class OperatorKind(Enum):
    IO = auto()
    CONV = auto()
    ELEMENTWISE = auto()
    NORM = auto()
    ACTIVATION = auto()
    FUSED = auto()


@dataclass(frozen=True)
class Operator:
    """算子能力：形状推导 + 执行"""
    op_type: str
    kind: OperatorKind
    infer_shape: Callable[[OpDesc, ShapeMap], None]
    run: Callable[[OpDesc, Scope], None]


# -----------------------------------------------------------------------------
# 槽位辅助
# -----------------------------------------------------------------------------

def _first(slots: Dict[str, list], slot: str, op: OpDesc) -> str:
    names = slots.get(slot)
    if not names:
        raise KeyError(f"{op.type}: missing slot '{slot}'")
    return names[0]


def _input(op: OpDesc, slot: str) -> str:
    return _first(op.inputs, slot, op)


def _param(op: OpDesc, slot: str) -> str:
    # 偏置等参数也可能以普通输入的形式给出
    if slot in op.params:
        return _first(op.params, slot, op)
    return _first(op.inputs, slot, op)


def _output(op: OpDesc, slot: str) -> str:
    return _first(op.outputs, slot, op)


def _pair(value, default: int) -> Tuple[int, int]:
    if value is None:
        return (default, default)
    if isinstance(value, (list, tuple)):
        if len(value) == 1:
            return (int(value[0]), int(value[0]))
        return (int(value[0]), int(value[1]))
    return (int(value), int(value))


# -----------------------------------------------------------------------------
# 计算函数
# -----------------------------------------------------------------------------

def _conv(op: OpDesc, x: torch.Tensor, weight: torch.Tensor, depthwise: bool = False) -> torch.Tensor:
    groups = op.attrs.get("groups")
    if groups is None:
        groups = x.shape[1] if depthwise else 1
    return F.conv2d(
        x,
        weight,
        stride=_pair(op.attrs.get("strides"), 1),
        padding=_pair(op.attrs.get("paddings"), 0),
        dilation=_pair(op.attrs.get("dilations"), 1),
        groups=int(groups),
    )


def _add(op: OpDesc, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
    axis = int(op.attrs.get("axis", -1))
    if axis >= 0 and y.dim() < x.dim():
        # 按 axis 对齐后补齐尾部维度
        trailing = x.dim() - axis - y.dim()
        y = y.reshape(tuple(y.shape) + (1,) * trailing)
    return x + y


def _batch_norm(op: OpDesc, x, scale, bias, mean, variance) -> torch.Tensor:
    return F.batch_norm(
        x,
        mean,
        variance,
        weight=scale,
        bias=bias,
        training=False,
        eps=float(op.attrs.get("epsilon", 1e-5)),
    )


def _conv_shape(op: OpDesc, shapes: ShapeMap, input_slot: str, filter_slot: str) -> Tuple[int, ...]:
    n, _, h, w = shapes[_input(op, input_slot)]
    out_c, _, kh, kw = shapes[_param(op, filter_slot)]
    sh, sw = _pair(op.attrs.get("strides"), 1)
    ph, pw = _pair(op.attrs.get("paddings"), 0)
    dh, dw = _pair(op.attrs.get("dilations"), 1)
    out_h = (h + 2 * ph - dh * (kh - 1) - 1) // sh + 1
    out_w = (w + 2 * pw - dw * (kw - 1) - 1) // sw + 1
    return (n, out_c, out_h, out_w)


# -----------------------------------------------------------------------------
# 单算子
# -----------------------------------------------------------------------------

def _identity_shape(in_slot: str, out_slot: str):
    def infer(op: OpDesc, shapes: ShapeMap):
        shapes[_output(op, out_slot)] = shapes[_input(op, in_slot)]
    return infer


def _conv_infer(out_slot: str):
    def infer(op: OpDesc, shapes: ShapeMap):
        shapes[_output(op, out_slot)] = _conv_shape(op, shapes, "Input", "Filter")
    return infer


def _run_identity(op: OpDesc, scope: Scope):
    scope[_output(op, "Out")] = scope[_input(op, "X")]


def _run_conv2d(op: OpDesc, scope: Scope):
    x = scope[_input(op, "Input")]
    scope[_output(op, "Output")] = _conv(op, x, scope[_param(op, "Filter")])


def _run_depthwise_conv2d(op: OpDesc, scope: Scope):
    x = scope[_input(op, "Input")]
    scope[_output(op, "Output")] = _conv(op, x, scope[_param(op, "Filter")], depthwise=True)


def _run_elementwise_add(op: OpDesc, scope: Scope):
    x = scope[_input(op, "X")]
    scope[_output(op, "Out")] = _add(op, x, scope[_param(op, "Y")])


def _run_batch_norm(op: OpDesc, scope: Scope):
    x = scope[_input(op, "X")]
    scope[_output(op, "Y")] = _batch_norm(
        op, x,
        scope[_param(op, "Scale")],
        scope[_param(op, "Bias")],
        scope[_param(op, "Mean")],
        scope[_param(op, "Variance")],
    )


def _run_relu(op: OpDesc, scope: Scope):
    scope[_output(op, "Out")] = F.relu(scope[_input(op, "X")])


# -----------------------------------------------------------------------------
# 融合算子
# -----------------------------------------------------------------------------

def _fused_bn(op: OpDesc, scope: Scope, x: torch.Tensor) -> torch.Tensor:
    return _batch_norm(
        op, x,
        scope[_param(op, "BNScale")],
        scope[_param(op, "BNBias")],
        scope[_param(op, "BNMean")],
        scope[_param(op, "BNVariance")],
    )


def _run_conv_add_batchnorm_relu(op: OpDesc, scope: Scope):
    y = _conv(op, scope[_input(op, "Input")], scope[_param(op, "Filter")])
    y = _add(op, y, scope[_param(op, "Bias")])
    scope[_output(op, "Out")] = F.relu(_fused_bn(op, scope, y))


def _run_conv_add(op: OpDesc, scope: Scope):
    y = _conv(op, scope[_input(op, "Input")], scope[_param(op, "Filter")])
    scope[_output(op, "Out")] = _add(op, y, scope[_param(op, "Bias")])


def _run_conv_bn_relu(op: OpDesc, scope: Scope):
    y = _conv(op, scope[_input(op, "Input")], scope[_param(op, "Filter")])
    scope[_output(op, "Out")] = F.relu(_fused_bn(op, scope, y))


def _run_dwconv_bn_relu(op: OpDesc, scope: Scope):
    y = _conv(op, scope[_input(op, "Input")], scope[_param(op, "Filter")], depthwise=True)
    scope[_output(op, "Out")] = F.relu(_fused_bn(op, scope, y))


# -----------------------------------------------------------------------------
# 算子表
# -----------------------------------------------------------------------------

OPERATORS: Dict[str, Operator] = {
    op.op_type: op
    for op in (
        Operator("feed", OperatorKind.IO, _identity_shape("X", "Out"), _run_identity),
        Operator("fetch", OperatorKind.IO, _identity_shape("X", "Out"), _run_identity),
        Operator("conv2d", OperatorKind.CONV, _conv_infer("Output"), _run_conv2d),
        Operator("depthwise_conv2d", OperatorKind.CONV, _conv_infer("Output"), _run_depthwise_conv2d),
        Operator("elementwise_add", OperatorKind.ELEMENTWISE, _identity_shape("X", "Out"), _run_elementwise_add),
        Operator("batch_norm", OperatorKind.NORM, _identity_shape("X", "Y"), _run_batch_norm),
        Operator("relu", OperatorKind.ACTIVATION, _identity_shape("X", "Out"), _run_relu),
        Operator("conv_add_batchnorm_relu", OperatorKind.FUSED, _conv_infer("Out"), _run_conv_add_batchnorm_relu),
        Operator("conv_add", OperatorKind.FUSED, _conv_infer("Out"), _run_conv_add),
        Operator("conv_bn_relu", OperatorKind.FUSED, _conv_infer("Out"), _run_conv_bn_relu),
        Operator("dwconv_bn_relu", OperatorKind.FUSED, _conv_infer("Out"), _run_dwconv_bn_relu),
    )
}


def get_operator(op_type: str) -> Operator:
    operator = OPERATORS.get(op_type)
    if operator is None:
        raise UnknownOperatorType(op_type)
    return operator


def get_supported_ops():
    """获取有参考实现的算子类型集合"""
    return set(OPERATORS)

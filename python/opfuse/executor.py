"""
程序执行器 - 用参考算子逐个执行 ProgramDesc

按程序顺序执行每个算子，中间结果存储在作用域字典中。
优化失败回退时执行的就是原始的未融合程序。
"""

import logging
from typing import Dict, Optional, Tuple

import torch

from opfuse.errors import UnsupportedMultiBlock
from opfuse.operators import Operator, get_operator
from opfuse.program import ProgramDesc

logger = logging.getLogger(__name__)


class ProgramExecutor:
    """
    单 Block 程序执行器

    Example:
        >>> executor = ProgramExecutor()
        >>> scope = executor.run(program, {"image": x, "conv_w": w})
        >>> scope["out"].shape
        torch.Size([1, 8, 16, 16])
    """

    def __init__(self, operators: Optional[Dict[str, Operator]] = None):
        self._operators: Dict[str, Operator] = dict(operators or {})

    def register_op(self, operator: Operator):
        """注册自定义算子，优先于内置参考算子"""
        self._operators[operator.op_type] = operator

    def _lookup(self, op_type: str) -> Operator:
        operator = self._operators.get(op_type)
        if operator is None:
            operator = get_operator(op_type)
        return operator

    def run(self, program: ProgramDesc, feeds: Dict[str, torch.Tensor]) -> Dict[str, torch.Tensor]:
        """
        执行程序。

        Args:
            program: 单 Block 程序
            feeds: 输入与参数张量，键为张量名

        Returns:
            执行结束后的作用域（包含所有中间结果）
        """
        block = _single_block(program)
        scope: Dict[str, torch.Tensor] = dict(feeds)

        with torch.no_grad():
            for op in block.ops:
                self._lookup(op.type).run(op, scope)

        logger.debug("Executed %d ops", len(block.ops))
        return scope

    def infer_shapes(
        self,
        program: ProgramDesc,
        shapes: Dict[str, Tuple[int, ...]],
    ) -> Dict[str, Tuple[int, ...]]:
        """按程序顺序推导所有张量形状"""
        block = _single_block(program)
        result = dict(shapes)
        for op in block.ops:
            self._lookup(op.type).infer_shape(op, result)
        return result


def _single_block(program: ProgramDesc):
    if len(program.blocks) != 1:
        raise UnsupportedMultiBlock(len(program.blocks))
    return program.blocks[0]

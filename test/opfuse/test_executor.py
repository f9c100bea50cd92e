"""
参考执行器测试 - 验证融合前后程序的计算结果一致

测试覆盖：
- 各内置融合模板优化后的程序与原程序输出一致
- 形状推导
- 未知算子报错
"""

import pytest

torch = pytest.importorskip("torch")

from opfuse.errors import UnknownOperatorType, UnsupportedMultiBlock
from opfuse.optimizer import ProgramOptimizer
from opfuse.program import BlockDesc, ProgramDesc


def _conv_chain(make_op, conv_type="conv2d", with_add=True, with_bn=True, groups=1):
    ops = [make_op("feed", {"X": ["feed"]}, {"Out": ["x"]})]
    ops.append(make_op(
        conv_type,
        {"Input": ["x"]},
        {"Output": ["c"]},
        attrs={"strides": [1, 1], "paddings": [1, 1], "dilations": [1, 1], "groups": groups},
        params={"Filter": ["w"]},
    ))
    last = "c"
    if with_add:
        ops.append(make_op(
            "elementwise_add", {"X": [last]}, {"Out": ["a"]}, attrs={"axis": 1}, params={"Y": ["b"]}
        ))
        last = "a"
    if with_bn:
        ops.append(make_op(
            "batch_norm",
            {"X": [last]},
            {"Y": ["n"]},
            attrs={"epsilon": 1e-5},
            params={"Scale": ["s"], "Bias": ["beta"], "Mean": ["m"], "Variance": ["v"]},
        ))
        ops.append(make_op("relu", {"X": ["n"]}, {"Out": ["r"]}))
        last = "r"
    ops.append(make_op("fetch", {"X": [last]}, {"Out": ["out"]}))
    return ProgramDesc(blocks=[BlockDesc(ops=ops)])


def _feeds(in_channels=3, out_channels=4, depthwise=False):
    torch.manual_seed(0)
    channels = in_channels if depthwise else out_channels
    weight_in = 1 if depthwise else in_channels
    return {
        "feed": torch.randn(2, in_channels, 8, 8),
        "w": torch.randn(channels, weight_in, 3, 3),
        "b": torch.randn(channels),
        "s": torch.rand(channels) + 0.5,
        "beta": torch.randn(channels),
        "m": torch.randn(channels),
        "v": torch.rand(channels) + 0.5,
    }


class TestFusedEquivalence:
    """融合前后数值一致"""

    @pytest.mark.parametrize(
        "with_add, with_bn, fused_type",
        [
            (True, True, "conv_add_batchnorm_relu"),
            (True, False, "conv_add"),
            (False, True, "conv_bn_relu"),
        ],
    )
    def test_conv_fusions(self, make_op, with_add, with_bn, fused_type):
        from opfuse.executor import ProgramExecutor

        program = _conv_chain(make_op, with_add=with_add, with_bn=with_bn)
        optimized = ProgramOptimizer().optimize(program)
        feeds = _feeds()
        executor = ProgramExecutor()

        expected = executor.run(program, feeds)["out"]
        actual = executor.run(optimized, feeds)["out"]

        assert [op.type for op in optimized.blocks[0].ops] == ["feed", fused_type, "fetch"]
        torch.testing.assert_close(actual, expected)

    def test_depthwise_fusion(self, make_op):
        from opfuse.executor import ProgramExecutor

        program = _conv_chain(make_op, conv_type="depthwise_conv2d", with_add=False, groups=3)
        optimized = ProgramOptimizer().optimize(program)
        feeds = _feeds(depthwise=True)
        executor = ProgramExecutor()

        expected = executor.run(program, feeds)["out"]
        actual = executor.run(optimized, feeds)["out"]

        assert [op.type for op in optimized.blocks[0].ops] == ["feed", "dwconv_bn_relu", "fetch"]
        torch.testing.assert_close(actual, expected)


class TestProgramExecutor:
    """执行器基础功能"""

    def test_infer_shapes(self, make_op):
        from opfuse.executor import ProgramExecutor

        program = _conv_chain(make_op)
        optimized = ProgramOptimizer().optimize(program)
        shapes = {"feed": (2, 3, 8, 8), "w": (4, 3, 3, 3)}
        executor = ProgramExecutor()

        original = executor.infer_shapes(program, shapes)
        fused = executor.infer_shapes(optimized, shapes)

        assert original["out"] == (2, 4, 8, 8)
        assert fused["out"] == original["out"]

    def test_unknown_operator(self, make_op):
        from opfuse.executor import ProgramExecutor

        program = ProgramDesc(blocks=[BlockDesc(ops=[
            make_op("mystery_op", {"X": ["x"]}, {"Out": ["y"]}),
        ])])

        with pytest.raises(UnknownOperatorType):
            ProgramExecutor().run(program, {"x": torch.zeros(1)})

    def test_multi_block(self):
        from opfuse.executor import ProgramExecutor

        with pytest.raises(UnsupportedMultiBlock):
            ProgramExecutor().run(ProgramDesc(blocks=[BlockDesc(), BlockDesc()]), {})

    def test_register_op(self, make_op):
        from opfuse.executor import ProgramExecutor
        from opfuse.operators import Operator, OperatorKind

        def run_double(op, scope):
            scope[op.outputs["Out"][0]] = scope[op.inputs["X"][0]] * 2

        def infer_same(op, shapes):
            shapes[op.outputs["Out"][0]] = shapes[op.inputs["X"][0]]

        executor = ProgramExecutor()
        executor.register_op(Operator("double", OperatorKind.ELEMENTWISE, infer_same, run_double))
        program = ProgramDesc(blocks=[BlockDesc(ops=[
            make_op("double", {"X": ["x"]}, {"Out": ["y"]}),
        ])])

        scope = executor.run(program, {"x": torch.ones(3)})

        torch.testing.assert_close(scope["y"], torch.full((3,), 2.0))

    def test_supported_ops(self):
        from opfuse.operators import OperatorKind, get_operator, get_supported_ops

        ops = get_supported_ops()

        for op_type in ("conv2d", "relu", "conv_add_batchnorm_relu", "dwconv_bn_relu"):
            assert op_type in ops
        assert get_operator("conv_add").kind is OperatorKind.FUSED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Pytest configuration file for opfuse tests.

Shared fixtures that build small programs for the builder, matcher,
rewriter and optimizer tests.
"""

import pytest

from opfuse.program import BlockDesc, OpDesc, ProgramDesc, VarDesc


def _op(op_type, inputs, outputs, attrs=None, params=None):
    return OpDesc(
        type=op_type,
        inputs={k: list(v) for k, v in inputs.items()},
        outputs={k: list(v) for k, v in outputs.items()},
        attrs=dict(attrs or {}),
        params={k: list(v) for k, v in (params or {}).items()},
    )


@pytest.fixture
def make_op():
    """OpDesc 工厂"""
    return _op


@pytest.fixture
def make_program():
    """由算子列表构建单 Block 程序"""
    def _make(ops, var_names=()):
        variables = tuple(VarDesc(name) for name in var_names)
        return ProgramDesc(blocks=[BlockDesc(vars=variables, ops=list(ops))])
    return _make


@pytest.fixture
def conv_chain_ops():
    """
    conv2d -> elementwise_add -> batch_norm -> relu，张量 v0 -> v1 -> v2 -> v3 -> v4

    prefix 用于在同一程序里构建多条链时区分张量名。
    """
    def _make(prefix="", tail=None):
        p = prefix
        return [
            _op(
                "conv2d",
                {"Input": [f"{p}v0"]},
                {"Output": [f"{p}v1"]},
                attrs={"strides": [1, 1], "paddings": [1, 1], "groups": 1, "op_role": 0},
                params={"Filter": [f"{p}conv_w"]},
            ),
            _op(
                "elementwise_add",
                {"X": [f"{p}v1"]},
                {"Out": [f"{p}v2"]},
                attrs={"axis": 1},
                params={"Y": [f"{p}add_b"]},
            ),
            _op(
                "batch_norm",
                {"X": [f"{p}v2"]},
                {"Y": [f"{p}v3"]},
                attrs={"epsilon": 1e-5, "momentum": 0.9},
                params={
                    "Scale": [f"{p}bn_scale"],
                    "Bias": [f"{p}bn_bias"],
                    "Mean": [f"{p}bn_mean"],
                    "Variance": [f"{p}bn_var"],
                },
            ),
            _op(
                "relu",
                {"X": [f"{p}v3"]},
                {"Out": [tail or f"{p}v4"]},
                attrs={"op_role": 1},
            ),
        ]
    return _make

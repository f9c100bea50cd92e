"""
卷积类常用融合模式

移动端推理中常见的 conv + bias + bn + 激活 组合。
"""

from typing import List

from opfuse.pattern import FusionTemplate, chain

# batch_norm 的参数槽位与 elementwise_add 重命名后的 Bias 冲突，统一加 BN 前缀
_BN_RENAME = (
    ("Scale", "BNScale"),
    ("Bias", "BNBias"),
    ("Mean", "BNMean"),
    ("Variance", "BNVariance"),
)


def create_conv_add_bn_relu_pattern() -> FusionTemplate:
    """
    创建 Conv + Add + BatchNorm + ReLU 融合模式

    output = relu(batch_norm(conv2d(x, filter) + bias))
    """
    return FusionTemplate(
        name="conv_add_batchnorm_relu",
        root=chain("conv2d", "elementwise_add", "batch_norm", "relu"),
        fused_type="conv_add_batchnorm_relu",
        rename={
            "elementwise_add": (("Y", "Bias"),),
            "batch_norm": _BN_RENAME,
        },
    )


def create_conv_add_pattern() -> FusionTemplate:
    """
    创建 Conv + Add（偏置）融合模式
    """
    return FusionTemplate(
        name="conv_add",
        root=chain("conv2d", "elementwise_add"),
        fused_type="conv_add",
        rename={"elementwise_add": (("Y", "Bias"),)},
    )


def create_conv_bn_relu_pattern() -> FusionTemplate:
    """
    创建 Conv + BatchNorm + ReLU 融合模式
    """
    return FusionTemplate(
        name="conv_bn_relu",
        root=chain("conv2d", "batch_norm", "relu"),
        fused_type="conv_bn_relu",
        rename={"batch_norm": _BN_RENAME},
    )


def create_dwconv_bn_relu_pattern() -> FusionTemplate:
    """
    创建 DepthwiseConv + BatchNorm + ReLU 融合模式

    常见于 MobileNet 系列。
    """
    return FusionTemplate(
        name="dwconv_bn_relu",
        root=chain("depthwise_conv2d", "batch_norm", "relu"),
        fused_type="dwconv_bn_relu",
        rename={"batch_norm": _BN_RENAME},
    )


# 预定义的卷积融合模式列表（顺序即尝试顺序）
CONV_FUSION_PATTERNS: List[FusionTemplate] = [
    create_conv_add_bn_relu_pattern(),
    create_conv_add_pattern(),
    create_conv_bn_relu_pattern(),
    create_dwconv_bn_relu_pattern(),
]

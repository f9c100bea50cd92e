"""
Patterns 模块初始化
"""

from opfuse.patterns.conv_patterns import (
    create_conv_add_bn_relu_pattern,
    create_conv_add_pattern,
    create_conv_bn_relu_pattern,
    create_dwconv_bn_relu_pattern,
    CONV_FUSION_PATTERNS,
)

__all__ = [
    "create_conv_add_bn_relu_pattern",
    "create_conv_add_pattern",
    "create_conv_bn_relu_pattern",
    "create_dwconv_bn_relu_pattern",
    "CONV_FUSION_PATTERNS",
]

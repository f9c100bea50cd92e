"""
融合优化配置模块
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class FusionConfig:
    """
    融合优化配置

    控制融合行为的运行时参数，支持动态开关。

    Attributes:
        enable_fusion: 总开关，False 时原样返回程序（仍做结构校验）
        fallback_on_error: optimize_or_fallback 遇到 FusionError 时是否回退到原程序
        debug_mode: 调试模式，开启后记录每个候选节点的匹配决策
        disabled_patterns: 按名称禁用的融合模板
        max_pattern_depth: 模板允许的最大深度，超过时注册报错

    Example:
        >>> config = FusionConfig(debug_mode=True, disabled_patterns=("conv_add",))
        >>> optimizer = ProgramOptimizer(config=config)
    """
    # 核心开关
    enable_fusion: bool = True
    fallback_on_error: bool = True
    debug_mode: bool = False

    # 模板控制
    disabled_patterns: Tuple[str, ...] = ()
    max_pattern_depth: int = 8

    def __repr__(self) -> str:
        return (
            f"FusionConfig("
            f"enable_fusion={self.enable_fusion}, "
            f"fallback_on_error={self.fallback_on_error}, "
            f"debug_mode={self.debug_mode}, "
            f"disabled={list(self.disabled_patterns)}, "
            f"max_pattern_depth={self.max_pattern_depth})"
        )

"""
模式匹配模块

判断候选节点截断到模板深度的局部子图，是否与模板结构相等：
1. 根类型必须等于模板触发类型
2. 为候选节点构造前缀影子树：只保留类型名，深度截断到 template.depth
   或遇到真实叶子为止
3. 影子树与模板树做 pattern_equal 比较

中间层级的额外扇出会导致后继个数不一致，从而匹配失败；
模板叶子所在层级被截断，叶子本身的扇出不影响匹配。
"""

import logging

from opfuse.fusion_config import FusionConfig
from opfuse.graph import NodeArena
from opfuse.pattern import FusionTemplate, PatternNode, pattern_equal

logger = logging.getLogger(__name__)


def prefix_copy(arena: NodeArena, index: int, depth: int) -> PatternNode:
    """
    构造节点 index 的前缀影子树，共 depth 层（depth >= 1）。
    """
    node = arena[index]
    if depth <= 1:
        return PatternNode(node.op_type)
    return PatternNode(
        node.op_type,
        tuple(prefix_copy(arena, succ, depth - 1) for succ in node.outputs),
    )


class PatternMatcher:
    """
    模板匹配器（只读，不修改节点图）

    Example:
        >>> matcher = PatternMatcher()
        >>> matcher.matches(built.arena, 0, create_conv_add_pattern())
        True
    """

    def __init__(self, config: FusionConfig = None):
        self.config = config or FusionConfig()

    def matches(self, arena: NodeArena, index: int, template: FusionTemplate) -> bool:
        node = arena[index]
        if node.op_type != template.trigger_type:
            return False

        shadow = prefix_copy(arena, index, template.depth)
        matched = pattern_equal(shadow, template.root)

        if self.config.debug_mode:
            logger.debug(
                "[Fusion] %s node #%d for '%s': %r",
                "Match" if matched else "No match", index, template.name, shadow,
            )
        return matched

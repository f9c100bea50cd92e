"""
融合模板目录 - 有序的模板注册表

按注册顺序依次尝试；靠前的模板可能吃掉靠后模板本可以匹配的节点，
因此顺序本身就是语义的一部分。新增融合只需注册模板，不需要改动
匹配器或改写器。
"""

from typing import Iterable, Iterator, List, Optional

from opfuse.errors import TemplateError
from opfuse.pattern import FusionTemplate


class FusionCatalog:
    """
    有序融合模板注册表

    Example:
        >>> catalog = FusionCatalog()
        >>> catalog.register(create_conv_add_pattern())
        >>> [t.name for t in catalog]
        ['conv_add']
    """

    def __init__(
        self,
        templates: Optional[Iterable[FusionTemplate]] = None,
        max_depth: Optional[int] = None,
    ):
        self._templates: List[FusionTemplate] = []
        self._max_depth = max_depth
        for template in templates or ():
            self.register(template)

    def register(self, template: FusionTemplate):
        """追加模板；重名或超过深度上限时抛出 TemplateError"""
        if any(t.name == template.name for t in self._templates):
            raise TemplateError(f"Fusion template '{template.name}' already registered")
        if self._max_depth is not None and template.depth > self._max_depth:
            raise TemplateError(
                f"Fusion template '{template.name}' depth {template.depth} "
                f"exceeds max {self._max_depth}"
            )
        self._templates.append(template)

    def get(self, name: str) -> Optional[FusionTemplate]:
        for template in self._templates:
            if template.name == name:
                return template
        return None

    def templates(self) -> List[FusionTemplate]:
        return list(self._templates)

    def trigger_types(self) -> List[str]:
        """所有模板的触发类型（去重，保持顺序）"""
        seen = []
        for template in self._templates:
            if template.trigger_type not in seen:
                seen.append(template.trigger_type)
        return seen

    def __iter__(self) -> Iterator[FusionTemplate]:
        return iter(list(self._templates))

    def __len__(self) -> int:
        return len(self._templates)

    def __repr__(self) -> str:
        return f"FusionCatalog({[t.name for t in self._templates]})"


def default_catalog(max_depth: Optional[int] = None) -> FusionCatalog:
    """按默认顺序注册内置卷积融合模板"""
    from opfuse.patterns.conv_patterns import CONV_FUSION_PATTERNS

    return FusionCatalog(CONV_FUSION_PATTERNS, max_depth=max_depth)

"""
异常定义模块

优化器抛出的所有异常都继承自 FusionError，调用方可以统一捕获后
回退到未优化的程序执行。
"""


class FusionError(Exception):
    """图融合优化失败异常"""
    pass


class UnknownOperatorType(FusionError):
    """算子注册表中找不到该算子类型的输入/输出槽位信息"""

    def __init__(self, op_type: str):
        self.op_type = op_type
        super().__init__(f"Unknown operator type '{op_type}': no slot info registered")


class UnsupportedMultiBlock(FusionError):
    """程序包含多个 Block，当前只支持单 Block 优化"""

    def __init__(self, num_blocks: int):
        self.num_blocks = num_blocks
        super().__init__(f"Program has {num_blocks} blocks, only single-block programs are supported")


class TemplateError(FusionError):
    """融合模板定义非法或重复注册"""
    pass

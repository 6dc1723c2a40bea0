#!/usr/bin/env python3
"""
异常定义
"""


class GraphError(Exception):
    """图结构不变量被破坏"""


class CFGConstructionError(GraphError):
    """CFG构建失败（如出口不可达、未知语句类型），只中止当前单元的构建"""

    def __init__(self, message: str, unit: str = ''):
        super().__init__(f"{unit}: {message}" if unit else message)
        self.unit = unit


class ImmutableGraphError(GraphError):
    """试图修改已冻结的图"""

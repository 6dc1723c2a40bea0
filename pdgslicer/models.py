#!/usr/bin/env python3
"""
数据模型定义
"""

from dataclasses import dataclass
from typing import Optional, Union

from jmodel import Variable
from pdgraph import Node


@dataclass(frozen=True)
class SliceCriterion:
    """切片准则：(节点, 变量)；变量可以直接给出名字"""
    node: Node
    variable: Union[Variable, str]

    @property
    def variable_name(self) -> str:
        return self.variable if isinstance(self.variable, str) else self.variable.name

    def matches(self, var: Optional[Variable]) -> bool:
        if var is None:
            return False
        if isinstance(self.variable, str):
            return var.name == self.variable
        return var == self.variable

    def is_defined(self) -> bool:
        """准则节点是否定义了该变量"""
        return any(self.matches(v) for v in self.node.defs)

    def is_used(self) -> bool:
        """准则节点是否使用了该变量"""
        return any(self.matches(v) for v in self.node.uses)

    @property
    def key(self):
        return (self.node.id, self.variable_name if isinstance(self.variable, str) else self.variable)

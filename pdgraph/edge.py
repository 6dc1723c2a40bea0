#!/usr/bin/env python3
"""
边类型定义

ControlFlow 是CFG中的控制流边；Dependence 是PDG/ClDG/SDG中的依赖边
"""

from enum import Enum
from typing import Optional

from jmodel import Variable

from .errors import GraphError
from .graph import Edge


class FlowSort(Enum):
    """控制流边类型"""
    TRUE = "true"
    FALSE = "false"
    FALL_THROUGH = "fall"
    PARAMETER = "param"


class DependenceSort(Enum):
    """依赖边类型"""
    CD_TRUE = "T"
    CD_FALSE = "F"
    CD_FALL = "Fall"
    LIDD = "LIDD"              # loop-independent def-use
    LCDD = "LCDD"              # loop-carried def-use
    DEF_ORDER = "DefOrder"
    OUTPUT = "Output"
    ANTI = "Anti"
    PARAMETER_IN = "ParamIn"
    PARAMETER_OUT = "ParamOut"
    SUMMARY = "Summary"
    CLASS_MEMBER = "ClassMember"


CD_SORTS = frozenset([DependenceSort.CD_TRUE, DependenceSort.CD_FALSE, DependenceSort.CD_FALL])
DEF_USE_SORTS = frozenset([DependenceSort.LIDD, DependenceSort.LCDD])
DD_SORTS = frozenset([
    DependenceSort.LIDD, DependenceSort.LCDD, DependenceSort.DEF_ORDER,
    DependenceSort.OUTPUT, DependenceSort.ANTI, DependenceSort.PARAMETER_IN,
    DependenceSort.PARAMETER_OUT, DependenceSort.SUMMARY,
])


class ControlFlow(Edge):
    """控制流边；loop_back 为闭合循环的回边所属循环节点的编号"""

    def __init__(self, edge_id: int, src: int, dst: int, sort: FlowSort = FlowSort.TRUE,
                 loop_back: Optional[int] = None):
        super().__init__(edge_id, src, dst, sort)
        self.loop_back = loop_back

    def is_true(self) -> bool:
        return self.sort == FlowSort.TRUE

    def is_false(self) -> bool:
        return self.sort == FlowSort.FALSE

    def is_fall_through(self) -> bool:
        return self.sort == FlowSort.FALL_THROUGH

    def is_parameter(self) -> bool:
        return self.sort == FlowSort.PARAMETER

    def is_loop_back(self) -> bool:
        return self.loop_back is not None

    def copy_with(self, edge_id: int, src: int, dst: int, loop_back: Optional[int] = None) -> 'ControlFlow':
        return ControlFlow(edge_id, src, dst, self.sort,
                           loop_back if loop_back is not None else self.loop_back)

    def __repr__(self):
        back = f", loop={self.loop_back}" if self.loop_back is not None else ''
        return f"ControlFlow({self.id}: {self.src} -> {self.dst}, {self.label}{back})"


class Dependence(Edge):
    """依赖边；数据依赖边携带变量，循环携带依赖还必须携带循环节点编号"""

    def __init__(self, edge_id: int, src: int, dst: int, sort: DependenceSort,
                 variable: Optional[Variable] = None, loop_carried_node: Optional[int] = None):
        if sort == DependenceSort.LCDD and loop_carried_node is None:
            raise GraphError(f"循环携带依赖 {src} -> {dst} 缺少循环节点")
        super().__init__(edge_id, src, dst, sort)
        self.variable = variable
        self.loop_carried_node = loop_carried_node

    def is_cd(self) -> bool:
        return self.sort in CD_SORTS

    def is_dd(self) -> bool:
        return self.sort in DD_SORTS

    def is_def_use(self) -> bool:
        return self.sort in DEF_USE_SORTS

    def is_loop_carried(self) -> bool:
        return self.sort == DependenceSort.LCDD

    def is_summary(self) -> bool:
        return self.sort == DependenceSort.SUMMARY

    def is_parameter(self) -> bool:
        return self.sort in (DependenceSort.PARAMETER_IN, DependenceSort.PARAMETER_OUT)

    def copy_with(self, edge_id: int, src: int, dst: int, loop_carried_node: Optional[int] = None) -> 'Dependence':
        return Dependence(edge_id, src, dst, self.sort, self.variable,
                          loop_carried_node if loop_carried_node is not None else self.loop_carried_node)

    def __repr__(self):
        var = f", {self.variable}" if self.variable is not None else ''
        loop = f", loop={self.loop_carried_node}" if self.loop_carried_node is not None else ''
        return f"Dependence({self.id}: {self.src} -> {self.dst}, {self.label}{var}{loop})"

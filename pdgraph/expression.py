#!/usr/bin/env python3
"""
表达式访问器

收集表达式中定义/使用的变量，并把调用相关的节点（actual-in、调用节点、actual-out）
按执行顺序插入到当前语句节点之前
"""

import logging
from typing import List

from jmodel import Expression, JavaMethod, Variable, VariableKind

from .node import (
    CallPayload, Node, NodeSort, ParameterPayload, RETURN_ORDINAL,
)

logger = logging.getLogger(__name__)


CALL_NODE_SORTS = {
    'method_call': NodeSort.METHOD_CALL,
    'constructor_call': NodeSort.CONSTRUCTOR_CALL,
    'instance_creation': NodeSort.INSTANCE_CREATION,
}


class ExpressionVisitor:
    """
    访问挂在一个语句（或参数）节点上的表达式
    
    sequence 保存该语句展开后的节点序列，最后一个元素总是语句节点本身；
    entry_node 是序列的第一个节点，控制流应从它进入
    """

    def __init__(self, lowering, node: Node):
        self.lowering = lowering
        self.node = node
        self.current = node
        self.sequence: List[Node] = [node]
        self._defining = [False]

    @property
    def entry_node(self) -> Node:
        return self.sequence[0]

    @property
    def exit_node(self) -> Node:
        return self.node

    def insert_before_current(self, node: Node):
        index = next(i for i, n in enumerate(self.sequence) if n.id == self.current.id)
        self.sequence.insert(index, node)

    # ---- 访问入口 ----

    def visit(self, expr: Expression, defining: bool = False):
        if expr is None:
            return
        self._defining.append(defining)
        try:
            self._dispatch(expr)
        finally:
            self._defining.pop()

    def _is_defining(self) -> bool:
        return self._defining[-1]

    def _dispatch(self, expr: Expression):
        t = expr.type
        if t == 'name':
            self._handle_variable(expr, expr.variable)
        elif t == 'field_access':
            if expr.receiver is not None:
                self.visit(expr.receiver)
            self._handle_variable(expr, expr.variable)
        elif t == 'this':
            self._register(Variable('$this', expr.class_name, expr.class_name, VariableKind.SPECIAL))
        elif t == 'literal':
            pass
        elif t == 'assignment':
            self._handle_assignment(expr)
        elif t == 'unary':
            self.visit(expr.operand, defining=False)
            if expr.is_increment():
                self.visit(expr.operand, defining=True)
        elif t == 'array_access':
            # 数组元素赋值视为对数组变量的定义
            self.visit(expr.array, defining=self._is_defining())
            self.visit(expr.index)
        elif t in CALL_NODE_SORTS:
            self._handle_call(expr, CALL_NODE_SORTS[t])
        else:
            for child in expr.children():
                self.visit(child)

    def _register(self, var: Variable):
        if self._is_defining():
            self.current.add_def(var)
        else:
            self.current.add_use(var)

    def _handle_variable(self, expr: Expression, var):
        if var is None:
            self.lowering.report_unresolved(expr)
            return
        self._register(var)

    def _handle_assignment(self, expr):
        self.visit(expr.target, defining=True)
        if expr.is_compound():
            self.visit(expr.target, defining=False)
        self.visit(expr.value)

    # ---- 调用 ----

    def _handle_call(self, expr, sort: NodeSort):
        binding = expr.binding
        if binding is None:
            self.lowering.report_unresolved(expr)
            return

        call_node = self.lowering.new_node(sort, expr, CallPayload(callee=binding))
        expanded = self.lowering.should_expand(binding)
        call_node.payload.expanded = expanded

        if expanded:
            self._create_actual_ins(expr, call_node, binding)
        self.insert_before_current(call_node)
        if not expanded:
            self._merge_actual_ins(expr, call_node)

        if expanded:
            self._create_actual_outs(call_node)
            self._create_actual_out_for_return(expr, call_node, binding)
        else:
            ret = self.lowering.special_variable(f"!{getattr(expr, 'name', '')}", binding.return_type)
            call_node.add_def(ret)
            self.current.add_use(ret)

        receiver = getattr(expr, 'receiver', None) or getattr(expr, 'outer', None)
        if receiver is not None:
            self.visit(receiver)

    def _parameter_type(self, binding: JavaMethod, ordinal: int) -> str:
        if not binding.parameters:
            return ''
        return binding.parameters[min(ordinal, len(binding.parameters) - 1)].type

    def _create_actual_ins(self, expr, call_node: Node, binding: JavaMethod):
        for ordinal, arg in enumerate(expr.arguments):
            ain = self.lowering.new_node(NodeSort.ACTUAL_IN, arg,
                                         ParameterPayload(ordinal, call_node.id))
            ain.add_def(self.lowering.special_variable('', self._parameter_type(binding, ordinal)))
            self.insert_before_current(ain)
            call_node.payload.actual_ins.append(ain.id)

            saved = self.current
            self.current = ain
            self.visit(arg)
            self.current = saved

    def _merge_actual_ins(self, expr, call_node: Node):
        """不展开的调用：实参中的全部使用都记在调用节点上"""
        saved = self.current
        self.current = call_node
        for arg in expr.arguments:
            self.visit(arg)
        self.current = saved

    def _create_actual_outs(self, call_node: Node):
        """非基本类型的实参对象可能在被调方法中被修改，为其创建actual-out"""
        for ain_id in call_node.payload.actual_ins:
            ain = self.lowering.cfg[ain_id]
            if len(ain.uses) != 1 or ain.uses[0].is_primitive():
                continue
            aout = self.lowering.new_node(NodeSort.ACTUAL_OUT, ain.element,
                                          ParameterPayload(ain.payload.ordinal, call_node.id))
            aout.add_def(ain.uses[0])
            aout.add_use(ain.defs[0])
            self.insert_before_current(aout)
            call_node.payload.actual_outs.append(aout.id)

    def _create_actual_out_for_return(self, expr, call_node: Node, binding: JavaMethod):
        if binding.is_void:
            return
        aout = self.lowering.new_node(NodeSort.ACTUAL_OUT, expr,
                                      ParameterPayload(RETURN_ORDINAL, call_node.id))
        aout.add_def(self.lowering.special_variable('', binding.return_type))
        aout.add_use(self.lowering.special_variable(f"!{getattr(expr, 'name', '')}",
                                                    binding.return_type))
        self.insert_before_current(aout)
        call_node.payload.actual_outs.append(aout.id)
        self.current.add_use(aout.defs[0])

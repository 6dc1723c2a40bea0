#!/usr/bin/env python3
"""
控制流图(CFG)构建器

把方法/构造函数/初始化块/字段初始化式的语法树降级为CFG。

每个语句处理函数接收一组"待连接的出边"（(源节点, 边类型) 列表），
返回语句执行完后仍待连接的出边；下一个被创建的节点接收这些边
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from jmodel import (
    JavaClass, JavaField, JavaMethod, MethodKind, Statement, Variable, VariableKind,
    to_source,
)

from .base import BaseAnalyzer
from .cfg import CFG
from .edge import FlowSort
from .errors import CFGConstructionError
from .expression import ExpressionVisitor
from .node import (
    EXIT_OF, EntryPayload, MergePayload, Node, NodeSort, ParameterPayload,
    RETURN_ORDINAL, SwitchPayload, TryPayload,
)

logger = logging.getLogger(__name__)


ENTRY_SORT_OF = {
    MethodKind.METHOD: NodeSort.METHOD_ENTRY,
    MethodKind.CONSTRUCTOR: NodeSort.CONSTRUCTOR_ENTRY,
    MethodKind.INITIALIZER: NodeSort.INITIALIZER_ENTRY,
}

LOOP_STATEMENTS = ('while_statement', 'do_statement', 'for_statement', 'enhanced_for_statement')


class _Placeholder:
    """尚未确定的后继节点：第一次被连接时记住目标（用于do循环体入口）"""

    def __init__(self):
        self.target: Optional[Node] = None


Source = Union[Node, _Placeholder]
Pending = List[Tuple[Source, FlowSort]]


@dataclass
class _JumpTarget:
    """break/continue 的跳转目标"""
    kind: str                       # 'loop' / 'switch' / 'label'
    label: Optional[str] = None
    breaks: Pending = field(default_factory=list)
    continues: Pending = field(default_factory=list)


class _Lowering:
    """单个CFG的降级过程"""

    def __init__(self, builder: 'CFGBuilder', cfg: CFG, method: Optional[JavaMethod] = None,
                 owner_name: str = ''):
        self.builder = builder
        self.cfg = cfg
        self.context = builder.context
        self.config = builder.config
        self.method = method
        self.owner_name = owner_name
        self.jumps: List[_JumpTarget] = []
        self.labels: Dict[str, _JumpTarget] = {}
        self._pending_label: Optional[str] = None
        self.returns: Pending = []
        self.throws: Pending = []
        self._special_count = 0
        self._calls_self: Dict[str, bool] = {}

    # ---- 基础设施 ----

    def new_node(self, sort: NodeSort, element=None, payload=None) -> Node:
        node = Node(self.context.next_id(), sort, element, payload)
        self.cfg.add_node(node)
        return node

    def special_variable(self, suffix: str, var_type: str = '') -> Variable:
        """合成变量 $N（参数传递、返回值）"""
        self._special_count += 1
        return Variable(f"${self._special_count}{suffix}", var_type, self.owner_name,
                        VariableKind.SPECIAL)

    def report_unresolved(self, element):
        self.cfg.unresolved.append(element)
        logger.warning(f"{self.cfg.name}: 未解析的绑定 '{to_source(element)}' (行 {getattr(element, 'line', 0)})")

    def connect(self, pending: Pending, node: Node, loop: Optional[Node] = None):
        """把待连接的出边全部接到node上；与已有边重复的fall边不再创建"""
        ordered = [p for p in pending if p[1] != FlowSort.FALL_THROUGH] + \
                  [p for p in pending if p[1] == FlowSort.FALL_THROUGH]
        for src, sort in ordered:
            if isinstance(src, _Placeholder):
                if src.target is None:
                    src.target = node
                continue
            if sort == FlowSort.FALL_THROUGH and self.cfg.get_edges(src.id, node.id):
                continue
            self.cfg.add_flow(src, node, sort, loop.id if loop is not None else None)

    def chain(self, pending: Pending, visitor: ExpressionVisitor, loop: Optional[Node] = None) -> Node:
        """连接到表达式展开后的节点序列，并把序列串起来；返回语句节点"""
        sequence = visitor.sequence
        self.connect(pending, sequence[0], loop)
        for prev, nxt in zip(sequence, sequence[1:]):
            self.cfg.add_flow(prev, nxt, FlowSort.TRUE)
        return visitor.exit_node

    def should_expand(self, binding: JavaMethod) -> bool:
        """自递归调用和项目外调用不展开"""
        return (self.config.create_actual_nodes and binding.in_project
                and not self.calls_self(binding))

    def calls_self(self, binding: JavaMethod) -> bool:
        if self.method is None:
            return False
        me = self.method.qualified_name
        key = binding.qualified_name
        if key == me:
            return True
        if key not in self._calls_self:
            self._calls_self[key] = self._reaches(binding, me)
        return self._calls_self[key]

    @staticmethod
    def _reaches(start: JavaMethod, target: str) -> bool:
        """start是否（直接或间接）调用了target"""
        seen = {start.qualified_name}
        stack = [start]
        while stack:
            jm = stack.pop()
            for callee in jm.called_methods():
                if callee.qualified_name == target:
                    return True
                if callee.in_project and callee.qualified_name not in seen:
                    seen.add(callee.qualified_name)
                    stack.append(callee)
        return False

    # ---- 跳转目标 ----

    def _push(self, kind: str, label: Optional[str] = None) -> _JumpTarget:
        if kind == 'loop' and self._pending_label is not None:
            label = self._pending_label
        self._pending_label = None
        target = _JumpTarget(kind, label)
        self.jumps.append(target)
        if label is not None:
            self.labels[label] = target
        return target

    def _pop(self):
        target = self.jumps.pop()
        if target.label is not None:
            self.labels.pop(target.label, None)

    def _break_target(self, label: Optional[str]) -> Optional[_JumpTarget]:
        if label is not None:
            return self.labels.get(label)
        for target in reversed(self.jumps):
            if target.kind in ('loop', 'switch'):
                return target
        return None

    def _continue_target(self, label: Optional[str]) -> Optional[_JumpTarget]:
        if label is not None:
            target = self.labels.get(label)
            return target if target is not None and target.kind == 'loop' else None
        for target in reversed(self.jumps):
            if target.kind == 'loop':
                return target
        return None

    # ---- 语句 ----

    def lower_statements(self, statements: List[Statement], pending: Pending) -> Pending:
        for stmt in statements:
            pending = self.lower(stmt, pending)
        return pending

    def lower(self, stmt: Optional[Statement], pending: Pending) -> Pending:
        """降级一条语句，返回其待连接的出边"""
        if stmt is None:
            return pending
        t = stmt.type

        if t == 'block':
            return self.lower_statements(stmt.statements, pending)
        elif t == 'empty_statement':
            return self._lower_simple(stmt, NodeSort.EMPTY, pending)
        elif t == 'expression_statement':
            return self._lower_simple(stmt, NodeSort.ASSIGNMENT, pending, stmt.expression)
        elif t == 'variable_declaration':
            return self._lower_variable_declaration(stmt, pending)
        elif t == 'if_statement':
            return self._lower_if(stmt, pending)
        elif t == 'while_statement':
            return self._lower_while(stmt, pending)
        elif t == 'do_statement':
            return self._lower_do(stmt, pending)
        elif t == 'for_statement':
            return self._lower_for(stmt, pending)
        elif t == 'enhanced_for_statement':
            return self._lower_enhanced_for(stmt, pending)
        elif t == 'switch_statement':
            return self._lower_switch(stmt, pending)
        elif t == 'break_statement':
            return self._lower_break(stmt, pending)
        elif t == 'continue_statement':
            return self._lower_continue(stmt, pending)
        elif t == 'return_statement':
            return self._lower_return(stmt, pending)
        elif t == 'throw_statement':
            node = self.chain(pending, self.visit_node(self.new_node(NodeSort.THROW, stmt), stmt.expression))
            self.throws.append((node, FlowSort.TRUE))
            return [(node, FlowSort.FALL_THROUGH)]
        elif t == 'try_statement':
            return self._lower_try(stmt, pending)
        elif t == 'synchronized_statement':
            node = self.chain(pending, self.visit_node(self.new_node(NodeSort.SYNCHRONIZED, stmt), stmt.expression))
            return self.lower(stmt.body, [(node, FlowSort.TRUE)])
        elif t == 'labeled_statement':
            return self._lower_labeled(stmt, pending)
        elif t == 'assert_statement':
            return self._lower_simple(stmt, NodeSort.ASSERT, pending, stmt.expression, stmt.message)
        elif t == 'type_declaration_statement':
            return pending
        raise CFGConstructionError(f"未知的语句类型: {t}", self.cfg.name)

    def visit_node(self, node: Node, *expressions) -> ExpressionVisitor:
        visitor = ExpressionVisitor(self, node)
        for expr in expressions:
            visitor.visit(expr)
        return visitor

    def _lower_simple(self, stmt, sort: NodeSort, pending: Pending, *expressions) -> Pending:
        node = self.chain(pending, self.visit_node(self.new_node(sort, stmt), *expressions))
        return [(node, FlowSort.TRUE)]

    def lower_expression(self, expr, pending: Pending) -> Pending:
        """for的初始化/更新表达式单独成为一个节点"""
        return self._lower_simple(expr, NodeSort.ASSIGNMENT, pending, expr)

    def _lower_variable_declaration(self, stmt, pending: Pending) -> Pending:
        for fragment in stmt.fragments:
            element = stmt if len(stmt.fragments) == 1 else fragment
            node = self.new_node(NodeSort.LOCAL_DECLARATION, element)
            if fragment.variable is None:
                self.report_unresolved(fragment)
            else:
                node.add_def(fragment.variable)
            node = self.chain(pending, self.visit_node(node, fragment.initializer))
            pending = [(node, FlowSort.TRUE)]
        return pending

    def _lower_if(self, stmt, pending: Pending) -> Pending:
        node = self.chain(pending, self.visit_node(self.new_node(NodeSort.IF, stmt), stmt.condition))

        then_out = self.lower(stmt.then_statement, [(node, FlowSort.TRUE)])
        if stmt.else_statement is not None:
            else_out = self.lower(stmt.else_statement, [(node, FlowSort.FALSE)])
        else:
            else_out = [(node, FlowSort.FALSE)]

        merge = self.new_node(NodeSort.MERGE, stmt, MergePayload(node.id))
        self.connect(then_out + else_out, merge)
        return [(merge, FlowSort.TRUE)]

    def _lower_while(self, stmt, pending: Pending) -> Pending:
        visitor = self.visit_node(self.new_node(NodeSort.WHILE, stmt), stmt.condition)
        entry = visitor.entry_node
        node = self.chain(pending, visitor)

        target = self._push('loop')
        body_out = self.lower(stmt.body, [(node, FlowSort.TRUE)])
        self.connect(body_out + target.continues, entry, loop=node)
        self._pop()
        return [(node, FlowSort.FALSE)] + target.breaks

    def _lower_do(self, stmt, pending: Pending) -> Pending:
        body_entry = _Placeholder()
        target = self._push('loop')
        body_out = self.lower(stmt.body, [(body_entry, FlowSort.TRUE)])

        node = self.chain(body_out + target.continues,
                          self.visit_node(self.new_node(NodeSort.DO, stmt), stmt.condition))
        if body_entry.target is None:
            raise CFGConstructionError("do循环体入口未确定", self.cfg.name)
        self.connect(pending, body_entry.target)
        self.cfg.add_flow(node, body_entry.target, FlowSort.TRUE, loop_back=node.id)
        self._pop()
        return [(node, FlowSort.FALSE)] + target.breaks

    def _lower_for(self, stmt, pending: Pending) -> Pending:
        for init in stmt.initializers:
            if isinstance(init, Statement):
                pending = self.lower(init, pending)
            else:
                pending = self.lower_expression(init, pending)

        visitor = self.visit_node(self.new_node(NodeSort.FOR, stmt), stmt.condition)
        entry = visitor.entry_node
        node = self.chain(pending, visitor)

        target = self._push('loop')
        back = self.lower(stmt.body, [(node, FlowSort.TRUE)]) + target.continues
        for updater in stmt.updaters:
            back = self.lower_expression(updater, back)
        self.connect(back, entry, loop=node)
        self._pop()
        return [(node, FlowSort.FALSE)] + target.breaks

    def _lower_enhanced_for(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.FOR, stmt)
        if stmt.variable is None:
            self.report_unresolved(stmt)
        else:
            node.add_def(stmt.variable)
        node = self.chain(pending, self.visit_node(node, stmt.iterable))

        target = self._push('loop')
        body_out = self.lower(stmt.body, [(node, FlowSort.TRUE)])
        self.connect(body_out + target.continues, node, loop=node)
        self._pop()
        return [(node, FlowSort.FALSE)] + target.breaks

    def _lower_switch(self, stmt, pending: Pending) -> Pending:
        node = self.chain(pending, self.visit_node(self.new_node(NodeSort.SWITCH, stmt, SwitchPayload()),
                                               stmt.expression))
        target = self._push('switch')

        guard: Pending = [(node, FlowSort.TRUE)]
        fall: Pending = []
        default_node = None
        for case in stmt.cases:
            if case.is_default():
                # default在所有case都不匹配后才执行，其入边在循环结束后补上
                default_node = self.new_node(NodeSort.SWITCH_DEFAULT, case)
                node.payload.default_node = default_node.id
                body_pending = [(default_node, FlowSort.TRUE)] + fall
            else:
                case_node = self.new_node(NodeSort.SWITCH_CASE, case)
                for var in node.defs:
                    case_node.add_def(var)
                for var in node.uses:
                    case_node.add_use(var)
                case_node = self.chain(guard, self.visit_node(case_node, case.expression))
                guard = [(case_node, FlowSort.FALSE)]
                body_pending = [(case_node, FlowSort.TRUE)] + fall
            fall = self.lower_statements(case.statements, body_pending)

        if default_node is not None:
            self.connect(guard, default_node)
            guard = []
        self._pop()

        merge = self.new_node(NodeSort.MERGE, stmt, MergePayload(node.id))
        self.connect(fall + target.breaks + guard + [(node, FlowSort.FALSE)], merge)
        return [(merge, FlowSort.TRUE)]

    def _lower_break(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.BREAK, stmt)
        self.connect(pending, node)
        target = self._break_target(stmt.label)
        if target is None:
            self.report_unresolved(stmt)
        else:
            target.breaks.append((node, FlowSort.TRUE))
        return [(node, FlowSort.FALL_THROUGH)]

    def _lower_continue(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.CONTINUE, stmt)
        self.connect(pending, node)
        target = self._continue_target(stmt.label)
        if target is None:
            self.report_unresolved(stmt)
        else:
            target.continues.append((node, FlowSort.TRUE))
        return [(node, FlowSort.FALL_THROUGH)]

    def _lower_return(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.RETURN, stmt)
        if stmt.expression is not None and self.method is not None:
            node.add_def(self.method.return_variable)
        node = self.chain(pending, self.visit_node(node, stmt.expression))
        self.returns.append((node, FlowSort.TRUE))
        return [(node, FlowSort.FALL_THROUGH)]

    def _lower_try(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.TRY, stmt, TryPayload())
        self.connect(pending, node)

        exits = self.lower(stmt.body, [(node, FlowSort.TRUE)])
        guard: Pending = [(node, FlowSort.FALSE)]
        for clause in stmt.catches:
            catch_node = self.new_node(NodeSort.CATCH, clause)
            self.connect(guard, catch_node)
            node.payload.catches.append(catch_node.id)

            param = self.new_node(NodeSort.FORMAL_IN, clause, ParameterPayload(0, catch_node.id))
            if clause.exception is None:
                self.report_unresolved(clause)
                exception_type = ''
            else:
                param.add_def(clause.exception)
                exception_type = clause.exception.type
            param.add_use(self.special_variable('', exception_type))
            self.cfg.add_flow(catch_node, param, FlowSort.TRUE)

            exits = exits + self.lower(clause.body, [(param, FlowSort.TRUE)])
            guard = [(catch_node, FlowSort.FALSE)]
        exits = exits + guard

        if stmt.finally_block is not None:
            finally_node = self.new_node(NodeSort.FINALLY, stmt.finally_block)
            node.payload.finally_node = finally_node.id
            self.connect(exits, finally_node)
            exits = self.lower(stmt.finally_block, [(finally_node, FlowSort.TRUE)])

        merge = self.new_node(NodeSort.MERGE, stmt, MergePayload(node.id))
        self.connect(exits, merge)
        return [(merge, FlowSort.TRUE)]

    def _lower_labeled(self, stmt, pending: Pending) -> Pending:
        node = self.new_node(NodeSort.LABEL, stmt)
        self.connect(pending, node)
        if stmt.body is not None and stmt.body.type in LOOP_STATEMENTS:
            self._pending_label = stmt.label
            return self.lower(stmt.body, [(node, FlowSort.TRUE)])

        target = self._push('label', stmt.label)
        out = self.lower(stmt.body, [(node, FlowSort.TRUE)])
        self._pop()
        return out + target.breaks


class CFGBuilder(BaseAnalyzer):
    """CFG构建器"""

    def construct_cfg(self, method: JavaMethod) -> CFG:
        """
        构建方法/构造函数/初始化块的CFG
        
        入口 -> formal-in* -> 方法体 -> [formal-out] -> 出口
        """
        entry_sort = ENTRY_SORT_OF[method.kind]
        entry = Node(self.context.next_id(), entry_sort, method, EntryPayload())
        exit_node = Node(self.context.next_id(), EXIT_OF[entry_sort], method)
        cfg = CFG(self.context, entry, exit_node, method.qualified_name)
        lowering = _Lowering(self, cfg, method, method.qualified_name)

        pending: Pending = [(entry, FlowSort.PARAMETER if method.parameters else FlowSort.TRUE)]
        for ordinal, param in enumerate(method.parameters):
            fin = lowering.new_node(NodeSort.FORMAL_IN, param, ParameterPayload(ordinal, entry.id))
            fin.add_def(param)
            fin.add_use(lowering.special_variable('', param.type))
            lowering.connect(pending, fin)
            entry.payload.formal_ins.append(fin.id)
            pending = [(fin, FlowSort.PARAMETER)]
        if method.parameters:
            pending = [(pending[0][0], FlowSort.TRUE)]

        pending = lowering.lower(method.body, pending)

        end: Pending = lowering.returns + pending
        if not method.is_void:
            fout = lowering.new_node(NodeSort.FORMAL_OUT, method,
                                     ParameterPayload(RETURN_ORDINAL, entry.id))
            fout.add_def(lowering.special_variable('', method.return_type))
            fout.add_use(method.return_variable)
            lowering.connect(end, fout)
            entry.payload.formal_outs.append(fout.id)
            end = [(fout, FlowSort.TRUE)]
        lowering.connect(lowering.throws + end, exit_node)

        cfg.validate()
        logger.debug("\n" + cfg.to_text())
        return cfg

    def construct_field_cfg(self, java_field: JavaField) -> CFG:
        """构建字段（或枚举常量）的CFG：入口 -> 字段声明 -> 出口"""
        entry_sort = NodeSort.ENUM_CONSTANT_ENTRY if java_field.is_enum_constant else NodeSort.FIELD_ENTRY
        entry = Node(self.context.next_id(), entry_sort, java_field, EntryPayload())
        exit_node = Node(self.context.next_id(), EXIT_OF[entry_sort], java_field)
        cfg = CFG(self.context, entry, exit_node, java_field.qualified_name)
        lowering = _Lowering(self, cfg, None, java_field.qualified_name)

        decl = lowering.new_node(NodeSort.FIELD_DECLARATION, java_field)
        decl.add_def(java_field.variable)
        decl = lowering.chain([(entry, FlowSort.TRUE)], lowering.visit_node(decl, java_field.initializer))
        lowering.connect([(decl, FlowSort.TRUE)], exit_node)

        cfg.validate()
        logger.debug("\n" + cfg.to_text())
        return cfg

    def construct_cfgs(self, java_class: JavaClass) -> Tuple[List[CFG], Dict[str, CFGConstructionError]]:
        """
        构建类中所有字段和方法（含内部类）的CFG
        
        Returns:
            (CFG列表, 构建失败的单元 -> 异常)
        """
        cfgs: List[CFG] = []
        failures: Dict[str, CFGConstructionError] = {}
        for java_field in java_class.fields:
            try:
                cfgs.append(self.construct_field_cfg(java_field))
            except CFGConstructionError as e:
                logger.error(f"字段 {java_field.qualified_name} 的CFG构建失败: {e}")
                failures[java_field.qualified_name] = e
        for method in java_class.methods:
            try:
                cfgs.append(self.construct_cfg(method))
            except CFGConstructionError as e:
                logger.error(f"方法 {method.qualified_name} 的CFG构建失败: {e}")
                failures[method.qualified_name] = e
        for inner in java_class.inner_classes:
            inner_cfgs, inner_failures = self.construct_cfgs(inner)
            cfgs.extend(inner_cfgs)
            failures.update(inner_failures)
        return cfgs, failures

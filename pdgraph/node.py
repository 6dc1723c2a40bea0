#!/usr/bin/env python3
"""
节点模块

节点是带 sort 标签的统一记录，类型相关的附加信息放在 payload 中；
payload 中对其它节点的引用一律使用编号
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

from jmodel import AstNode, Variable, to_source

from .graph import GraphElement

logger = logging.getLogger(__name__)


class NodeSort(Enum):
    """节点类型枚举"""
    # 入口
    CLASS_ENTRY = "classEntry"
    INTERFACE_ENTRY = "interfaceEntry"
    ENUM_ENTRY = "enumEntry"
    METHOD_ENTRY = "methodEntry"
    CONSTRUCTOR_ENTRY = "constructorEntry"
    INITIALIZER_ENTRY = "initializerEntry"
    FIELD_ENTRY = "fieldEntry"
    ENUM_CONSTANT_ENTRY = "enumConstantEntry"
    # 出口
    CLASS_EXIT = "classExit"
    INTERFACE_EXIT = "interfaceExit"
    ENUM_EXIT = "enumExit"
    METHOD_EXIT = "methodExit"
    CONSTRUCTOR_EXIT = "constructorExit"
    INITIALIZER_EXIT = "initializerExit"
    FIELD_EXIT = "fieldExit"
    ENUM_CONSTANT_EXIT = "enumConstantExit"
    # 语句
    ASSIGNMENT = "assignment"
    METHOD_CALL = "methodCall"
    CONSTRUCTOR_CALL = "constructorCall"
    INSTANCE_CREATION = "instanceCreation"
    FIELD_DECLARATION = "fieldDeclaration"
    LOCAL_DECLARATION = "localDeclaration"
    ASSERT = "assertSt"
    BREAK = "breakSt"
    CONTINUE = "continueSt"
    DO = "doSt"
    FOR = "forSt"
    IF = "ifSt"
    RETURN = "returnSt"
    SWITCH_CASE = "switchCaseSt"
    SWITCH_DEFAULT = "switchDefaultSt"
    WHILE = "whileSt"
    EMPTY = "emptySt"
    LABEL = "labelSt"
    SWITCH = "switchSt"
    SYNCHRONIZED = "synchronizedSt"
    THROW = "throwSt"
    TRY = "trySt"
    CATCH = "catchSt"
    FINALLY = "finallySt"
    # 参数
    FORMAL_IN = "formalIn"
    FORMAL_OUT = "formalOut"
    ACTUAL_IN = "actualIn"
    ACTUAL_OUT = "actualOut"
    # 其它
    MERGE = "merge"
    DUMMY = "dummy"


ENTRY_SORTS = frozenset([
    NodeSort.CLASS_ENTRY, NodeSort.INTERFACE_ENTRY, NodeSort.ENUM_ENTRY,
    NodeSort.METHOD_ENTRY, NodeSort.CONSTRUCTOR_ENTRY, NodeSort.INITIALIZER_ENTRY,
    NodeSort.FIELD_ENTRY, NodeSort.ENUM_CONSTANT_ENTRY,
])

EXIT_SORTS = frozenset([
    NodeSort.CLASS_EXIT, NodeSort.INTERFACE_EXIT, NodeSort.ENUM_EXIT,
    NodeSort.METHOD_EXIT, NodeSort.CONSTRUCTOR_EXIT, NodeSort.INITIALIZER_EXIT,
    NodeSort.FIELD_EXIT, NodeSort.ENUM_CONSTANT_EXIT,
])

EXIT_OF = {
    NodeSort.CLASS_ENTRY: NodeSort.CLASS_EXIT,
    NodeSort.INTERFACE_ENTRY: NodeSort.INTERFACE_EXIT,
    NodeSort.ENUM_ENTRY: NodeSort.ENUM_EXIT,
    NodeSort.METHOD_ENTRY: NodeSort.METHOD_EXIT,
    NodeSort.CONSTRUCTOR_ENTRY: NodeSort.CONSTRUCTOR_EXIT,
    NodeSort.INITIALIZER_ENTRY: NodeSort.INITIALIZER_EXIT,
    NodeSort.FIELD_ENTRY: NodeSort.FIELD_EXIT,
    NodeSort.ENUM_CONSTANT_ENTRY: NodeSort.ENUM_CONSTANT_EXIT,
}

PARAMETER_SORTS = frozenset([
    NodeSort.FORMAL_IN, NodeSort.FORMAL_OUT, NodeSort.ACTUAL_IN, NodeSort.ACTUAL_OUT,
])

CALL_SORTS = frozenset([
    NodeSort.METHOD_CALL, NodeSort.CONSTRUCTOR_CALL, NodeSort.INSTANCE_CREATION,
])

LOOP_SORTS = frozenset([NodeSort.WHILE, NodeSort.DO, NodeSort.FOR])

BRANCH_STATEMENT_SORTS = frozenset([
    NodeSort.IF, NodeSort.WHILE, NodeSort.DO, NodeSort.FOR,
    NodeSort.SWITCH_CASE, NodeSort.SWITCH, NodeSort.TRY, NodeSort.CATCH,
])

STATEMENT_SORTS = frozenset(
    s for s in NodeSort
    if s not in ENTRY_SORTS and s not in EXIT_SORTS and s not in PARAMETER_SORTS
    and s not in (NodeSort.MERGE, NodeSort.DUMMY)
)


# ---- payload ----

@dataclass
class EntryPayload:
    formal_ins: List[int] = field(default_factory=list)
    formal_outs: List[int] = field(default_factory=list)

    def remap(self, id_map: Dict[int, int]) -> 'EntryPayload':
        return EntryPayload([id_map[i] for i in self.formal_ins],
                            [id_map[i] for i in self.formal_outs])


@dataclass
class CallPayload:
    """调用节点；callee 为解析出的目标方法，expanded 表示参数是否展开为actual节点"""
    callee: object = None
    actual_ins: List[int] = field(default_factory=list)
    actual_outs: List[int] = field(default_factory=list)
    expanded: bool = False

    def remap(self, id_map: Dict[int, int]) -> 'CallPayload':
        return replace(self, actual_ins=[id_map[i] for i in self.actual_ins],
                       actual_outs=[id_map[i] for i in self.actual_outs])


RETURN_ORDINAL = -1


@dataclass
class ParameterPayload:
    """参数节点；ordinal 为参数序号（返回值对应 RETURN_ORDINAL），owner 为所属入口/调用/catch节点"""
    ordinal: int
    owner: int

    def remap(self, id_map: Dict[int, int]) -> 'ParameterPayload':
        return ParameterPayload(self.ordinal, id_map[self.owner])


@dataclass
class MergePayload:
    branch: int

    def remap(self, id_map: Dict[int, int]) -> 'MergePayload':
        return MergePayload(id_map[self.branch])


@dataclass
class SwitchPayload:
    default_node: Optional[int] = None

    def remap(self, id_map: Dict[int, int]) -> 'SwitchPayload':
        return SwitchPayload(id_map[self.default_node] if self.default_node is not None else None)


@dataclass
class TryPayload:
    catches: List[int] = field(default_factory=list)
    finally_node: Optional[int] = None

    def remap(self, id_map: Dict[int, int]) -> 'TryPayload':
        return TryPayload([id_map[i] for i in self.catches],
                          id_map[self.finally_node] if self.finally_node is not None else None)


class Node(GraphElement):
    """
    CFG/PDG节点
    
    element 是对外部符号模型的只读引用；defs/uses 按插入顺序保存且按变量同一性去重
    """

    def __init__(self, node_id: int, sort: NodeSort, element=None, payload=None):
        super().__init__(node_id)
        self.sort = sort
        self.element = element
        self.payload = payload
        self.defs: List[Variable] = []
        self.uses: List[Variable] = []

    # ---- def/use ----

    def has_def_use(self) -> bool:
        return self.sort in STATEMENT_SORTS or self.sort in PARAMETER_SORTS

    def add_def(self, var: Variable) -> bool:
        if not self.has_def_use():
            logger.warning(f"节点 {self.id}({self.sort.value}) 不能定义变量 {var}")
            return False
        if var in self.defs:
            return False
        self.defs.append(var)
        return True

    def add_use(self, var: Variable) -> bool:
        if not self.has_def_use():
            logger.warning(f"节点 {self.id}({self.sort.value}) 不能使用变量 {var}")
            return False
        if var in self.uses:
            return False
        self.uses.append(var)
        return True

    def defines(self, var: Variable) -> bool:
        return var in self.defs

    def uses_var(self, var: Variable) -> bool:
        return var in self.uses

    # ---- sort 判断 ----

    def is_entry(self) -> bool:
        return self.sort in ENTRY_SORTS

    def is_exit(self) -> bool:
        return self.sort in EXIT_SORTS

    def is_statement(self) -> bool:
        return self.sort in STATEMENT_SORTS

    def is_parameter(self) -> bool:
        return self.sort in PARAMETER_SORTS

    def is_formal_in(self) -> bool:
        return self.sort == NodeSort.FORMAL_IN

    def is_formal_out(self) -> bool:
        return self.sort == NodeSort.FORMAL_OUT

    def is_actual_in(self) -> bool:
        return self.sort == NodeSort.ACTUAL_IN

    def is_actual_out(self) -> bool:
        return self.sort == NodeSort.ACTUAL_OUT

    def is_call(self) -> bool:
        return self.sort in CALL_SORTS

    def is_loop(self) -> bool:
        return self.sort in LOOP_SORTS

    def is_merge(self) -> bool:
        return self.sort == NodeSort.MERGE

    def is_pdg_node(self) -> bool:
        """PDG只保留入口、语句和参数节点"""
        return self.is_entry() or self.is_statement() or self.is_parameter()

    # ---- 显示 ----

    @property
    def line(self) -> int:
        return getattr(self.element, 'line', 0) or 0

    @property
    def text(self) -> str:
        if self.is_entry() or self.is_exit():
            name = getattr(self.element, 'qualified_name', '') or getattr(self.element, 'name', '')
            return f"{self.sort.value} {name}".strip()
        if self.is_parameter():
            defs = ','.join(str(v) for v in self.defs)
            uses = ','.join(str(v) for v in self.uses)
            return f"{self.sort.value} {defs} <= {uses}"
        if self.is_merge():
            return 'merge'
        if isinstance(self.element, AstNode):
            return to_source(self.element)
        if self.element is not None:
            return str(self.element)
        return self.sort.value

    def clone(self, new_id: int, id_map: Dict[int, int]) -> 'Node':
        """以新编号复制节点；payload 中的编号通过 id_map 重映射"""
        node = Node(new_id, self.sort, self.element,
                    self.payload.remap(id_map) if self.payload is not None else None)
        node.defs = list(self.defs)
        node.uses = list(self.uses)
        return node

    def to_text(self) -> str:
        defs = ', '.join(str(v) for v in self.defs)
        uses = ', '.join(str(v) for v in self.uses)
        return f"{self.id:4d}: {self.sort.value:<18} {self.text}  D={{{defs}}} U={{{uses}}}"

    def __repr__(self):
        return f"Node({self.id}, {self.sort.value})"

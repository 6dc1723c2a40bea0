#!/usr/bin/env python3
"""
系统依赖图(SDG)

从根方法出发，按需递归构建被调方法的PDG（按方法签名缓存），用parameter-in/out边
连接实参与形参，最后计算summary边
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from jmodel import JavaClass, JavaField, JavaMethod

from .base import BaseAnalyzer
from .edge import Dependence, DependenceSort
from .errors import CFGConstructionError, GraphError
from .graph import Graph
from .node import Node
from .pdg import PDG, PDGBuilder
from .summary import SummaryEdgeBuilder

logger = logging.getLogger(__name__)


class BuildState(Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class PDGCache:
    """
    方法/字段限定名 -> PDG 的共享缓存
    
    保证每个键至多构建一次；其它线程请求正在构建的键时等待结果发布
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._states: Dict[str, BuildState] = {}
        self._pdgs: Dict[str, PDG] = {}
        self._builders: Dict[str, int] = {}

    def state(self, key: str) -> BuildState:
        with self._cond:
            return self._states.get(key, BuildState.UNVISITED)

    def get(self, key: str) -> Optional[PDG]:
        with self._cond:
            return self._pdgs.get(key)

    def get_or_build(self, key: str, build: Callable[[], PDG]) -> PDG:
        me = threading.get_ident()
        with self._cond:
            while self._states.get(key) == BuildState.IN_PROGRESS:
                if self._builders.get(key) == me:
                    raise GraphError(f"{key} 的PDG构建发生重入")
                self._cond.wait()
            if self._states.get(key) == BuildState.DONE:
                return self._pdgs[key]
            self._states[key] = BuildState.IN_PROGRESS
            self._builders[key] = me

        try:
            pdg = build()
        except BaseException:
            with self._cond:
                self._states.pop(key, None)
                self._builders.pop(key, None)
                self._cond.notify_all()
            raise

        with self._cond:
            self._pdgs[key] = pdg
            self._states[key] = BuildState.DONE
            self._builders.pop(key, None)
            self._cond.notify_all()
        return pdg

    def clear(self):
        with self._cond:
            self._states.clear()
            self._pdgs.clear()
            self._builders.clear()

    def __len__(self):
        with self._cond:
            return len(self._pdgs)


class SDG(Graph):
    """系统依赖图"""

    def __init__(self, name: str = ''):
        super().__init__()
        self.name = name
        self.entries: List[Node] = []
        self._pdgs: Dict[str, PDG] = {}
        self._owner: Dict[int, str] = {}
        self.failures: Dict[str, CFGConstructionError] = {}

    @property
    def pdgs(self) -> List[PDG]:
        return list(self._pdgs.values())

    @property
    def binding_ok(self) -> bool:
        return all(pdg.binding_ok for pdg in self._pdgs.values())

    def has_pdg(self, key: str) -> bool:
        return key in self._pdgs

    def get_pdg(self, key: str) -> Optional[PDG]:
        return self._pdgs.get(key)

    def get_pdg_of(self, node: Node) -> Optional[PDG]:
        """节点所属的PDG"""
        key = self._owner.get(node.id)
        return self._pdgs.get(key) if key is not None else None

    def add_pdg(self, pdg: PDG):
        key = pdg.key
        if key in self._pdgs:
            return
        self._pdgs[key] = pdg
        self.entries.append(pdg.entry)
        for node in pdg.nodes:
            self._owner[node.id] = key
        self.merge(pdg)

    def get_call_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.is_call()]

    def get_parameter_edges(self) -> List[Dependence]:
        return self.get_edges_by_sort(DependenceSort.PARAMETER_IN, DependenceSort.PARAMETER_OUT)

    def get_summary_edges(self) -> List[Dependence]:
        return self.get_edges_by_sort(DependenceSort.SUMMARY)

    def to_text(self) -> str:
        lines = [f"----- SDG ({self.name}) -----"]
        for pdg in self._pdgs.values():
            lines.append(pdg.to_text())
        for edge in self.get_parameter_edges() + self.get_summary_edges():
            lines.append(f"{edge.src:4d} -> {edge.dst:4d} [{edge.label}] {edge.variable}")
        return '\n'.join(lines)


class SDGBuilder(BaseAnalyzer):
    """SDG构建器"""

    def __init__(self, context=None, cache: Optional[PDGCache] = None):
        super().__init__(context)
        self.cache = cache if cache is not None else PDGCache()
        self._pdg_builder = PDGBuilder(self.context)

    def construct_sdg(self, method: JavaMethod) -> SDG:
        """以method为根构建SDG"""
        sdg = SDG(method.qualified_name)
        self._integrate(sdg, method)
        self._finish(sdg)
        return sdg

    def construct_sdg_for_class(self, java_class: JavaClass) -> SDG:
        return self.construct_sdg_for_classes([java_class], java_class.qualified_name)

    def construct_sdg_for_classes(self, classes: Iterable[JavaClass], name: str = '') -> SDG:
        """以若干类的全部字段和方法为根构建SDG"""
        sdg = SDG(name)
        pending = list(classes)
        while pending:
            java_class = pending.pop(0)
            for java_field in java_class.fields:
                self._integrate(sdg, java_field)
            for method in java_class.methods:
                self._integrate(sdg, method)
            pending.extend(java_class.inner_classes)
        self._finish(sdg)
        return sdg

    def _finish(self, sdg: SDG):
        added = SummaryEdgeBuilder(self.context).compute(sdg)
        if sdg.failures:
            logger.warning(f"SDG {sdg.name}: {len(sdg.failures)} 个单元构建失败")
        if not sdg.binding_ok:
            logger.warning(f"SDG {sdg.name}: 存在未解析的绑定")
        logger.info(f"SDG {sdg.name}: {len(sdg.pdgs)} 个PDG, {len(sdg.nodes)} 个节点, "
                    f"{len(sdg.edges)} 条边, {added} 条summary边")

    def _get_pdg(self, unit) -> PDG:
        return self.cache.get_or_build(unit.qualified_name,
                                       lambda: self._pdg_builder.construct_pdg(unit))

    def _integrate(self, sdg: SDG, root):
        """把root及其（传递）被调方法、被访问字段的PDG并入SDG；构建失败的单元记入failures后跳过"""
        stack = [root]
        while stack:
            unit = stack.pop()
            if sdg.has_pdg(unit.qualified_name) or unit.qualified_name in sdg.failures:
                continue
            try:
                pdg = self._get_pdg(unit)
            except CFGConstructionError as e:
                logger.error(f"{unit.qualified_name} 的PDG构建失败: {e}")
                sdg.failures[unit.qualified_name] = e
                continue
            sdg.add_pdg(pdg)

            if isinstance(unit, JavaField):
                continue
            for call in pdg.get_call_nodes():
                callee = call.payload.callee
                if callee is not None and callee.in_project and not sdg.has_pdg(callee.qualified_name):
                    stack.append(callee)
            if self.config.include_field_pdgs:
                for java_field in unit.accessed_fields():
                    if java_field.in_project and not sdg.has_pdg(java_field.qualified_name):
                        stack.append(java_field)

        self._connect_all_parameters(sdg)

    def _connect_all_parameters(self, sdg: SDG):
        for call in sdg.get_call_nodes():
            if not call.payload.expanded or call.payload.callee is None:
                continue
            callee = sdg.get_pdg(call.payload.callee.qualified_name)
            caller = sdg.get_pdg_of(call)
            if callee is not None and caller is not None:
                self._connect_parameters(sdg, call, caller, callee)

    def _connect_parameters(self, sdg: SDG, call: Node, caller: PDG, callee: PDG):
        """actual-in[i] -> formal-in[min(i, n-1)]；非void时 formal-out -> 返回值actual-out"""
        formal_ins = callee.get_formal_ins()
        if formal_ins:
            for ordinal, ain in enumerate(caller.get_actual_ins(call)):
                fin = formal_ins[min(ordinal, len(formal_ins) - 1)]
                self._add_once(sdg, ain.id, fin.id, DependenceSort.PARAMETER_IN,
                               fin.uses[0] if fin.uses else None)

        formal_outs = callee.get_formal_outs()
        aout = caller.get_return_actual_out(call)
        if formal_outs and aout is not None:
            fout = formal_outs[0]
            self._add_once(sdg, fout.id, aout.id, DependenceSort.PARAMETER_OUT,
                           fout.defs[0] if fout.defs else None)

    def _add_once(self, sdg: SDG, src: int, dst: int, sort: DependenceSort, var):
        for edge in sdg.get_outgoing_edges_for_node(src):
            if edge.dst == dst and edge.sort == sort:
                return
        sdg.add_edge(Dependence(self.context.next_id(), src, dst, sort, var))

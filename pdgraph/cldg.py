#!/usr/bin/env python3
"""
类依赖图(ClDG)

类入口节点 + 所有成员（字段、方法）PDG 的并，类入口到每个成员入口有一条class-member边
"""

import logging
from typing import Dict, List

from jmodel import ClassKind, JavaClass

from .base import BaseAnalyzer
from .edge import Dependence, DependenceSort
from .errors import CFGConstructionError
from .graph import Graph
from .node import Node, NodeSort
from .pdg import PDG, PDGBuilder

logger = logging.getLogger(__name__)


CLASS_ENTRY_SORT = {
    ClassKind.CLASS: NodeSort.CLASS_ENTRY,
    ClassKind.INTERFACE: NodeSort.INTERFACE_ENTRY,
    ClassKind.ENUM: NodeSort.ENUM_ENTRY,
}


class ClDG(Graph):
    """类依赖图"""

    def __init__(self, entry: Node, name: str = ''):
        super().__init__()
        self.entry = entry
        self.name = name
        self.pdgs: List[PDG] = []
        self.failures: Dict[str, CFGConstructionError] = {}
        self.add_node(entry)

    @property
    def binding_ok(self) -> bool:
        return all(pdg.binding_ok for pdg in self.pdgs)

    def add_pdg(self, pdg: PDG, edge_id: int):
        self.pdgs.append(pdg)
        self.merge(pdg)
        self.add_edge(Dependence(edge_id, self.entry.id, pdg.entry.id, DependenceSort.CLASS_MEMBER))

    def get_pdg(self, key: str):
        for pdg in self.pdgs:
            if pdg.key == key:
                return pdg
        return None

    def to_text(self) -> str:
        lines = [f"----- ClDG ({self.name}) -----"]
        for pdg in self.pdgs:
            lines.append(pdg.to_text())
        return '\n'.join(lines)


class ClDGBuilder(BaseAnalyzer):
    """ClDG构建器"""

    def construct_cldg(self, java_class: JavaClass) -> ClDG:
        entry = Node(self.context.next_id(), CLASS_ENTRY_SORT[java_class.kind], java_class)
        cldg = ClDG(entry, java_class.qualified_name)

        builder = PDGBuilder(self.context)
        pdgs, failures = builder.construct_pdgs_for_class(java_class)
        cldg.failures.update(failures)
        for pdg in pdgs:
            if self.config.conservative_summaries:
                builder.add_conservative_summaries(pdg)
            cldg.add_pdg(pdg, self.context.next_id())

        if not cldg.binding_ok:
            logger.warning(f"{java_class.qualified_name}: 存在未解析的绑定")
        logger.debug(f"{java_class.qualified_name}: ClDG 含 {len(cldg.pdgs)} 个成员PDG, "
                     f"{len(cldg.failures)} 个失败")
        return cldg

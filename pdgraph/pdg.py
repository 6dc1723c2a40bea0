#!/usr/bin/env python3
"""
程序依赖图(PDG)

PDG的节点是CFG中的入口、语句和参数节点（与CFG共享同一批节点记录），
边只有控制依赖和数据依赖
"""

import logging
from typing import Dict, List, Tuple, Union

from jmodel import JavaClass, JavaField, JavaMethod

from .base import BaseAnalyzer
from .cdg import CDGBuilder
from .cfg import CFG
from .cfg_builder import CFGBuilder
from .ddg import DDGBuilder
from .edge import Dependence, DependenceSort
from .errors import CFGConstructionError
from .graph import Graph
from .node import Node, RETURN_ORDINAL

logger = logging.getLogger(__name__)


class PDG(Graph):
    """程序依赖图"""

    def __init__(self, entry: Node, cfg: CFG = None, name: str = ''):
        super().__init__()
        self.entry = entry
        self.cfg = cfg
        self.name = name or (cfg.name if cfg is not None else '')
        self.add_node(entry)

    @property
    def binding_ok(self) -> bool:
        return self.cfg.binding_ok if self.cfg is not None else True

    @property
    def key(self) -> str:
        """所表示方法/字段的限定名，用作缓存键"""
        return getattr(self.entry.element, 'qualified_name', self.name)

    def get_cd_edges(self) -> List[Dependence]:
        return [e for e in self.edges if e.is_cd()]

    def get_dd_edges(self) -> List[Dependence]:
        return [e for e in self.edges if e.is_dd()]

    def get_call_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.is_call()]

    def get_formal_ins(self) -> List[Node]:
        return [self[i] for i in self.entry.payload.formal_ins]

    def get_formal_outs(self) -> List[Node]:
        return [self[i] for i in self.entry.payload.formal_outs]

    def get_actual_ins(self, call_node: Node) -> List[Node]:
        return [self[i] for i in call_node.payload.actual_ins]

    def get_return_actual_out(self, call_node: Node):
        for aout_id in call_node.payload.actual_outs:
            aout = self[aout_id]
            if aout.payload.ordinal == RETURN_ORDINAL:
                return aout
        return None

    def clone(self, context=None) -> Tuple['PDG', Dict[int, int]]:
        """复制底层CFG并在副本上重新推导控制/数据依赖"""
        cfg, id_map = self.cfg.clone()
        return PDGBuilder(context or self.cfg.context).construct_pdg(cfg), id_map

    def to_text(self) -> str:
        lines = [f"----- PDG ({self.name}) -----"]
        for node in sorted(self.nodes, key=lambda n: n.id):
            lines.append(node.to_text())
        for edge in sorted(self.edges, key=lambda e: (e.src, e.dst, e.id)):
            extra = f" {edge.variable}" if edge.variable is not None else ''
            if edge.loop_carried_node is not None:
                extra += f" loop({edge.loop_carried_node})"
            lines.append(f"{edge.src:4d} -> {edge.dst:4d} [{edge.label}]{extra}")
        lines.append("-" * 30)
        return '\n'.join(lines)

    def __str__(self):
        return self.to_text()


class PDGBuilder(BaseAnalyzer):
    """PDG构建器：CFG -> PDG(CFG节点 + CD + DD)"""

    def construct_pdg(self, unit: Union[JavaMethod, JavaField, CFG]) -> PDG:
        """
        构建单个方法/字段的PDG
        
        Args:
            unit: 方法、字段或已构建好的CFG
        """
        if isinstance(unit, CFG):
            cfg = unit
        elif isinstance(unit, JavaField):
            cfg = CFGBuilder(self.context).construct_field_cfg(unit)
        else:
            cfg = CFGBuilder(self.context).construct_cfg(unit)

        pdg = PDG(cfg.entry, cfg)
        for node in cfg.nodes:
            if node.is_pdg_node():
                pdg.add_node(node)

        CDGBuilder(self.context).construct_cdg(pdg, cfg)
        DDGBuilder(self.context).construct_ddg(pdg, cfg)
        logger.debug("\n" + pdg.to_text())
        return pdg

    def construct_pdgs_for_class(self, java_class: JavaClass) -> Tuple[List[PDG], Dict[str, CFGConstructionError]]:
        """
        构建类中所有字段和方法（含内部类）的PDG；单个单元失败不影响其它单元
        
        Returns:
            (PDG列表, 构建失败的单元 -> 异常)
        """
        cfgs, failures = CFGBuilder(self.context).construct_cfgs(java_class)
        pdgs = []
        for cfg in cfgs:
            try:
                pdgs.append(self.construct_pdg(cfg))
            except CFGConstructionError as e:
                logger.error(f"{cfg.name} 的PDG构建失败: {e}")
                failures[cfg.name] = e
        return pdgs, failures

    def add_conservative_summaries(self, pdg: PDG) -> int:
        """不进入被调方法，为每个展开的调用添加 actual-in -> 返回值actual-out 的summary边"""
        count = 0
        for call in pdg.get_call_nodes():
            if not call.payload.expanded:
                continue
            aout = pdg.get_return_actual_out(call)
            if aout is None:
                continue
            for ain in pdg.get_actual_ins(call):
                pdg.add_edge(Dependence(self.context.next_id(), ain.id, aout.id,
                                        DependenceSort.SUMMARY, ain.defs[0] if ain.defs else None))
                count += 1
        return count

#!/usr/bin/env python3
"""
控制依赖(CD)计算

基于反向CFG上的支配树（即后支配树）：对分支节点A的每条出边 A->B，
从B沿后支配树向上走到A的直接后支配者（不含），途经的节点都控制依赖于A，
依赖边的标签与出边类型一致
"""

import logging
from typing import Dict, Set, Tuple

import networkx as nx

from .base import BaseAnalyzer
from .edge import Dependence, DependenceSort, FlowSort

logger = logging.getLogger(__name__)


CD_SORT_OF = {
    FlowSort.TRUE: DependenceSort.CD_TRUE,
    FlowSort.PARAMETER: DependenceSort.CD_TRUE,
    FlowSort.FALSE: DependenceSort.CD_FALSE,
    FlowSort.FALL_THROUGH: DependenceSort.CD_FALL,
}


def post_dominator_tree(cfg) -> Dict[int, int]:
    """
    计算直接后支配者
    
    Returns:
        节点编号 -> 直接后支配者编号（出口及无法到达出口的节点不在结果中）
    """
    reversed_cfg = cfg.to_networkx(reverse=True)
    idom = nx.immediate_dominators(reversed_cfg, cfg.exit.id)
    return {node: dom for node, dom in idom.items() if node != cfg.exit.id}


class CDGBuilder(BaseAnalyzer):
    """控制依赖构建器"""

    def construct_cdg(self, pdg, cfg) -> int:
        """
        向PDG中添加控制依赖边
        
        Args:
            pdg: 目标PDG（节点已加入）
            cfg: 对应的CFG
        Returns:
            新增的控制依赖边数量
        """
        ipdom = post_dominator_tree(cfg)
        added: Set[Tuple[int, int, DependenceSort]] = set()

        def add(src: int, dst: int, sort: DependenceSort):
            if src == dst or not pdg.contains_node(dst) or not pdg.contains_node(src):
                return
            if sort == DependenceSort.CD_FALL and self.config.exclude_fall_through_cd:
                return
            if (src, dst, sort) in added:
                return
            added.add((src, dst, sort))
            pdg.add_edge(Dependence(self.context.next_id(), src, dst, sort))

        # 分支节点
        for node in cfg.nodes:
            if node.id == cfg.entry.id or not cfg.is_branch(node.id):
                continue
            stop = ipdom.get(node.id)
            for edge in cfg.get_outgoing_edges_for_node(node.id):
                runner = edge.dst
                while runner is not None and runner != stop and runner != cfg.exit.id:
                    add(node.id, runner, CD_SORT_OF[edge.sort])
                    runner = ipdom.get(runner)

        # 调用节点 -> 其actual-in/actual-out
        for node in cfg.get_call_nodes():
            for param_id in node.payload.actual_ins + node.payload.actual_outs:
                add(node.id, param_id, DependenceSort.CD_TRUE)

        # 入口视为有一条通往出口的虚拟false边：后支配入口后继的节点都依赖于入口
        for edge in cfg.get_outgoing_edges_for_node(cfg.entry.id):
            runner = edge.dst
            while runner is not None and runner != cfg.exit.id:
                add(cfg.entry.id, runner, DependenceSort.CD_TRUE)
                runner = ipdom.get(runner)

        # 没有true/false控制依赖的节点直接依赖于入口
        for node in pdg.nodes:
            if node.id == cfg.entry.id:
                continue
            if not any(e.sort in (DependenceSort.CD_TRUE, DependenceSort.CD_FALSE)
                       for e in pdg.get_incoming_edges_for_node(node.id)):
                add(cfg.entry.id, node.id, DependenceSort.CD_TRUE)

        logger.debug(f"{cfg.name}: {len(added)} 条控制依赖边")
        return len(added)

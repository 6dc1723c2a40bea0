#!/usr/bin/env python3
"""
summary边计算

对SDG中每个展开的调用：若被调方法内 formal-in 经由数据依赖/summary边能到达 formal-out，
则在调用方添加 actual-in -> actual-out 的summary边。反复迭代直到不再产生新边（不动点）
"""

import logging
from collections import deque
from typing import Set

from .base import BaseAnalyzer
from .edge import Dependence, DependenceSort

logger = logging.getLogger(__name__)


INTRA_SORTS = frozenset([DependenceSort.LIDD, DependenceSort.LCDD, DependenceSort.SUMMARY])


class SummaryEdgeBuilder(BaseAnalyzer):
    """summary边构建器"""

    def compute(self, sdg) -> int:
        """
        计算summary边直到不动点
        
        Returns:
            本次新增的summary边数量
        """
        total = 0
        rounds = 0
        while True:
            rounds += 1
            added = self._one_round(sdg)
            total += added
            if added == 0:
                break
        logger.debug(f"summary边: {rounds} 轮迭代, 新增 {total} 条")
        return total

    def _one_round(self, sdg) -> int:
        added = 0
        for call in sdg.get_call_nodes():
            if not call.payload.expanded or call.payload.callee is None:
                continue
            callee = sdg.get_pdg(call.payload.callee.qualified_name)
            caller = sdg.get_pdg_of(call)
            if callee is None or caller is None:
                continue
            aout = caller.get_return_actual_out(call)
            formal_outs = callee.get_formal_outs()
            formal_ins = callee.get_formal_ins()
            if aout is None or not formal_outs or not formal_ins:
                continue

            reaching = self._reaching_formal_ins(sdg, callee, formal_outs[0].id)
            for ordinal, ain in enumerate(caller.get_actual_ins(call)):
                fin = formal_ins[min(ordinal, len(formal_ins) - 1)]
                if fin.id in reaching and not self._has_summary(sdg, ain.id, aout.id):
                    sdg.add_edge(Dependence(self.context.next_id(), ain.id, aout.id,
                                            DependenceSort.SUMMARY, ain.defs[0] if ain.defs else None))
                    added += 1
        return added

    @staticmethod
    def _has_summary(sdg, src: int, dst: int) -> bool:
        return any(e.dst == dst and e.sort == DependenceSort.SUMMARY
                   for e in sdg.get_outgoing_edges_for_node(src))

    @staticmethod
    def _reaching_formal_ins(sdg, callee, fout_id: int) -> Set[int]:
        """从formal-out沿被调方法内部的数据依赖/summary边反向可达的节点"""
        inside = callee.node_set()
        seen = {fout_id}
        queue = deque([fout_id])
        while queue:
            current = queue.popleft()
            for edge in sdg.get_incoming_edges_for_node(current):
                if edge.sort not in INTRA_SORTS or edge.src in seen or edge.src not in inside:
                    continue
                seen.add(edge.src)
                queue.append(edge.src)
        return seen

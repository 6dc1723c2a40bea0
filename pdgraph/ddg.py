#!/usr/bin/env python3
"""
数据依赖(DD)计算

对每个定义节点D和其定义的每个变量v，沿不含重定义的CFG路径（忽略fall边）搜索：
- 不经过回边即可到达的使用 -> 循环无关依赖(LIDD)
- 只能经过回边到达的使用 -> 循环携带依赖(LCDD)，携带节点为同时包含定义和使用的最内层循环
另外计算 def-order、anti 和 output 依赖
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from jmodel import Variable

from .base import BaseAnalyzer
from .edge import ControlFlow, Dependence, DependenceSort

logger = logging.getLogger(__name__)


def _flow_edges(cfg, node_id: int) -> Iterable[ControlFlow]:
    for edge in cfg.get_outgoing_edges_for_node(node_id):
        if not edge.is_fall_through():
            yield edge


class DDGBuilder(BaseAnalyzer):
    """数据依赖构建器"""

    def construct_ddg(self, pdg, cfg) -> int:
        """
        向PDG中添加数据依赖边
        
        Returns:
            新增的数据依赖边数量
        """
        self._pdg = pdg
        self._cfg = cfg
        self._added: Set[Tuple[int, int, DependenceSort, Variable]] = set()
        self._regions: Dict[int, Set[int]] = {}
        self._loops: Optional[List[int]] = None

        def_nodes = [n for n in pdg.nodes if n.defs]
        def_use: Dict[Tuple[int, Variable], List[int]] = {}

        for anchor in def_nodes:
            for var in anchor.defs:
                def_use[(anchor.id, var)] = self._find_def_use(anchor, var)
                self._find_def_order(anchor, var)

        for node in pdg.nodes:
            for var in node.uses:
                self._find_anti(node, var)

        self._find_output(def_nodes, def_use)
        logger.debug(f"{cfg.name}: {len(self._added)} 条数据依赖边")
        return len(self._added)

    def _add(self, src: int, dst: int, sort: DependenceSort, var: Variable,
             loop_node: Optional[int] = None):
        if not self._pdg.contains_node(src) or not self._pdg.contains_node(dst):
            return
        key = (src, dst, sort, var)
        if key in self._added:
            return
        self._added.add(key)
        self._pdg.add_edge(Dependence(self.context.next_id(), src, dst, sort, var, loop_node))

    # ---- def-use ----

    def _def_clear_reach(self, starts: Iterable[int], var: Variable, allow_loop_back: bool,
                         skip: Set[int]) -> Tuple[List[int], List[ControlFlow]]:
        """
        从starts出发沿def-clear路径BFS
        
        Returns:
            (到达的节点编号, 被拦下的回边)；重定义变量的节点会被到达但不再向前扩展
        """
        reached: List[int] = []
        seen: Set[int] = set(skip)
        blocked: List[ControlFlow] = []
        queue = deque(starts)
        while queue:
            node_id = queue.popleft()
            if node_id in seen:
                continue
            seen.add(node_id)
            reached.append(node_id)
            if self._cfg[node_id].defines(var):
                continue
            for edge in _flow_edges(self._cfg, node_id):
                if edge.is_loop_back() and not allow_loop_back:
                    blocked.append(edge)
                    continue
                queue.append(edge.dst)
        return reached, blocked

    def _loop_region(self, loop_id: int) -> Set[int]:
        """
        循环区域：循环节点、回边目标，以及不经过回边目标就能到达回边起点的节点
        
        外层循环的回边不会把外层循环体带进内层循环的区域
        """
        if loop_id not in self._regions:
            back_edges = [e for e in self._cfg.edges if e.is_loop_back() and e.loop_back == loop_id]
            region = {e.dst for e in back_edges}
            stack = [e.src for e in back_edges] + [loop_id]
            while stack:
                node_id = stack.pop()
                if node_id in region:
                    continue
                region.add(node_id)
                for edge in self._cfg.get_incoming_edges_for_node(node_id):
                    if not edge.is_fall_through():
                        stack.append(edge.src)
            self._regions[loop_id] = region
        return self._regions[loop_id]

    def _carrier(self, def_id: int, use_id: int, default: int) -> int:
        """同时包含定义和使用的最内层循环"""
        if self._loops is None:
            self._loops = sorted({e.loop_back for e in self._cfg.edges if e.is_loop_back()})
        common = [loop_id for loop_id in self._loops
                  if def_id in self._loop_region(loop_id) and use_id in self._loop_region(loop_id)]
        if not common:
            return default
        return min(common, key=lambda loop_id: (len(self._loop_region(loop_id)), loop_id))

    def _find_def_use(self, anchor, var: Variable) -> List[int]:
        """返回anchor处var的定义能到达的使用节点"""
        starts: List[int] = []
        initial_blocked: List[ControlFlow] = []
        for edge in _flow_edges(self._cfg, anchor.id):
            if edge.is_loop_back():
                initial_blocked.append(edge)
            else:
                starts.append(edge.dst)

        independent, blocked = self._def_clear_reach(starts, var, False, set())
        blocked = initial_blocked + blocked
        uses: List[int] = []
        for node_id in independent:
            if self._cfg[node_id].uses_var(var):
                self._add(anchor.id, node_id, DependenceSort.LIDD, var)
                uses.append(node_id)

        # 经过回边才能到达的部分，内层循环优先
        covered = set(independent)
        blocked.sort(key=lambda e: (len(self._loop_region(e.loop_back)), e.id))
        for back_edge in blocked:
            carried, _ = self._def_clear_reach([back_edge.dst], var, True, covered)
            covered.update(carried)
            for node_id in carried:
                node = self._cfg[node_id]
                if not node.uses_var(var):
                    continue
                if anchor.is_formal_in() or node.is_formal_out():
                    self._add(anchor.id, node_id, DependenceSort.LIDD, var)
                else:
                    carrier = self._carrier(anchor.id, node_id, back_edge.loop_back)
                    self._add(anchor.id, node_id, DependenceSort.LCDD, var, carrier)
                uses.append(node_id)
        return uses

    # ---- def-order / anti / output ----

    def _find_def_order(self, anchor, var: Variable):
        """anchor之后、中间没有使用和重定义即到达的同变量定义"""
        seen = {anchor.id}
        queue = deque(e.dst for e in _flow_edges(self._cfg, anchor.id))
        while queue:
            node_id = queue.popleft()
            if node_id in seen:
                continue
            seen.add(node_id)
            node = self._cfg[node_id]
            if node.defines(var):
                self._add(anchor.id, node_id, DependenceSort.DEF_ORDER, var)
                continue
            if node.uses_var(var):
                continue
            queue.extend(e.dst for e in _flow_edges(self._cfg, node_id))

    def _find_anti(self, use_node, var: Variable):
        """use_node读取var之后、中间没有重定义即到达的定义"""
        starts = [e.dst for e in _flow_edges(self._cfg, use_node.id)]
        reached, _ = self._def_clear_reach(starts, var, True, set())
        for node_id in reached:
            if node_id != use_node.id and self._cfg[node_id].defines(var):
                self._add(use_node.id, node_id, DependenceSort.ANTI, var)

    def _find_output(self, def_nodes, def_use: Dict[Tuple[int, Variable], List[int]]):
        """互不可达、但能到达同一个使用的两个同变量定义之间按源码位置添加output依赖"""
        by_var: Dict[Variable, List] = {}
        for node in def_nodes:
            for var in node.defs:
                by_var.setdefault(var, []).append(node)

        reach_cache: Dict[int, Set[int]] = {}

        def reachable(node) -> Set[int]:
            if node.id not in reach_cache:
                reach_cache[node.id] = {n.id for n in self._cfg.get_forward_reachable_nodes(node)}
            return reach_cache[node.id]

        for var, nodes in by_var.items():
            ordered = sorted(nodes, key=lambda n: (n.line, n.id))
            for i, first in enumerate(ordered):
                for second in ordered[i + 1:]:
                    if second.id in reachable(first) or first.id in reachable(second):
                        continue
                    common = set(def_use.get((first.id, var), [])) & set(def_use.get((second.id, var), []))
                    if common:
                        self._add(first.id, second.id, DependenceSort.OUTPUT, var)

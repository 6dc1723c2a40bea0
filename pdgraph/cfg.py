#!/usr/bin/env python3
"""
控制流图(CFG)

一个方法/构造函数/初始化块/字段对应一个CFG，有唯一的入口和出口节点
"""

import logging
from typing import Dict, List, Optional, Tuple

from .edge import ControlFlow, FlowSort
from .errors import CFGConstructionError
from .graph import Graph
from .node import Node, NodeSort

logger = logging.getLogger(__name__)


class CFG(Graph):
    """控制流图"""

    def __init__(self, context, entry: Node, exit_node: Node, name: str = ''):
        super().__init__()
        self.context = context
        self.name = name
        self.entry = entry
        self.exit = exit_node
        self.add_node(entry)
        self.add_node(exit_node)
        # 未解析的绑定（软失败）
        self.unresolved: List[object] = []
        self._basic_blocks = None

    @property
    def binding_ok(self) -> bool:
        return not self.unresolved

    @property
    def owner(self):
        """CFG所表示的方法或字段"""
        return self.entry.element

    def add_flow(self, src: Node, dst: Node, sort: FlowSort = FlowSort.TRUE,
                 loop_back: Optional[int] = None) -> ControlFlow:
        edge = ControlFlow(self.context.next_id(), src.id, dst.id, sort, loop_back)
        self.add_edge(edge)
        self._basic_blocks = None
        return edge

    # ---- 查询 ----

    def get_flow(self, src: Node, dst: Node) -> Optional[ControlFlow]:
        for edge in self.get_outgoing_edges_for_node(src.id):
            if edge.dst == dst.id:
                return edge
        return None

    def _successor_by_sort(self, node: Node, sort: FlowSort) -> Optional[Node]:
        for edge in self.get_outgoing_edges_for_node(node.id):
            if edge.sort == sort:
                return self[edge.dst]
        return None

    def get_true_successor(self, node: Node) -> Optional[Node]:
        """沿true边（或入口处的参数流边）的后继"""
        for edge in self.get_outgoing_edges_for_node(node.id):
            if edge.is_true() or edge.is_parameter():
                return self[edge.dst]
        return None

    def get_false_successor(self, node: Node) -> Optional[Node]:
        return self._successor_by_sort(node, FlowSort.FALSE)

    def get_fall_through_successor(self, node: Node) -> Optional[Node]:
        return self._successor_by_sort(node, FlowSort.FALL_THROUGH)

    def get_call_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.is_call()]

    def get_loop_back_edges(self) -> List[ControlFlow]:
        return [e for e in self.edges if e.is_loop_back()]

    def has_try_statement(self) -> bool:
        return any(n.sort == NodeSort.TRY for n in self.nodes)

    def get_forward_reachable_nodes(self, start: Node, include_loop_back: bool = True,
                                    end: Optional[Node] = None) -> List[Node]:
        """start（含）出发前向可达的节点；给定end时不越过end继续搜索"""
        return self._reachable(start, True, include_loop_back, end)

    def get_backward_reachable_nodes(self, start: Node, include_loop_back: bool = True,
                                     end: Optional[Node] = None) -> List[Node]:
        """start（含）出发后向可达的节点；给定end时不越过end继续搜索"""
        return self._reachable(start, False, include_loop_back, end)

    def _reachable(self, start: Node, forward: bool, include_loop_back: bool,
                   end: Optional[Node]) -> List[Node]:
        visited = [start]
        seen = {start.id}
        stack = [start.id]
        while stack:
            current = stack.pop()
            if end is not None and current == end.id and current != start.id:
                continue
            edges = (self.get_outgoing_edges_for_node(current) if forward
                     else self.get_incoming_edges_for_node(current))
            for edge in edges:
                if not include_loop_back and edge.is_loop_back():
                    continue
                nxt = edge.dst if forward else edge.src
                if nxt not in seen:
                    seen.add(nxt)
                    visited.append(self[nxt])
                    stack.append(nxt)
        return visited

    # ---- 基本块 ----

    def get_basic_blocks(self):
        """基本块划分（惰性计算并缓存）"""
        if self._basic_blocks is None:
            from .basic_block import partition
            self._basic_blocks = partition(self)
        return self._basic_blocks

    def get_basic_block(self, node: Node):
        for block in self.get_basic_blocks():
            if node.id in block:
                return block
        return None

    # ---- 校验与复制 ----

    def validate(self):
        """结构校验：出口必须从入口可达，否则说明构建有误"""
        reachable = {n.id for n in self.get_forward_reachable_nodes(self.entry)}
        if self.exit.id not in reachable:
            raise CFGConstructionError("出口节点不可达", self.name)
        unreachable = [n for n in self.nodes if n.id not in reachable]
        if unreachable:
            logger.warning(f"{self.name}: {len(unreachable)} 个节点从入口不可达: "
                           f"{[n.id for n in unreachable]}")

    def clone(self) -> Tuple['CFG', Dict[int, int]]:
        """
        复制CFG，所有节点和边获得新编号
        
        Returns:
            (新CFG, 旧编号 -> 新编号 映射)
        """
        id_map: Dict[int, int] = {}
        for node in self.nodes:
            id_map[node.id] = self.context.next_id()
        for edge in self.edges:
            id_map[edge.id] = self.context.next_id()

        entry = self.entry.clone(id_map[self.entry.id], id_map)
        exit_node = self.exit.clone(id_map[self.exit.id], id_map)
        cloned = CFG(self.context, entry, exit_node, self.name)
        for node in self.nodes:
            if node.id not in (self.entry.id, self.exit.id):
                cloned.add_node(node.clone(id_map[node.id], id_map))
        for edge in self.edges:
            loop_back = id_map[edge.loop_back] if edge.loop_back is not None else None
            cloned.add_edge(ControlFlow(id_map[edge.id], id_map[edge.src], id_map[edge.dst],
                                        edge.sort, loop_back))
        cloned.unresolved = list(self.unresolved)
        return cloned, id_map

    # ---- 输出 ----

    def to_text(self) -> str:
        lines = [f"----- CFG ({self.name}) -----"]
        for node in sorted(self.nodes, key=lambda n: n.id):
            lines.append(node.to_text())
        for edge in sorted(self.edges, key=lambda e: (e.src, e.dst, e.id)):
            back = f" loop-back({edge.loop_back})" if edge.is_loop_back() else ''
            lines.append(f"{edge.src:4d} -> {edge.dst:4d} [{edge.label}]{back}")
        lines.append("-" * 30)
        return '\n'.join(lines)

    def __str__(self):
        return self.to_text()

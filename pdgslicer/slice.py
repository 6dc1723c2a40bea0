#!/usr/bin/env python3
"""
后向切片

从切片准则出发沿全部控制依赖和数据依赖（含def-order、anti、output、参数边和summary边）反向遍历；
结果是一个只读的PDG形状的子图
"""

import logging
import threading
from typing import Dict, Union

from jmodel import Variable
from pdgraph import DependenceSort, Graph, Node
from pdgraph.edge import CD_SORTS, DD_SORTS

from .models import SliceCriterion

logger = logging.getLogger(__name__)


SLICE_SORTS = CD_SORTS | DD_SORTS

DD_CLOSURE_SORTS = frozenset([
    DependenceSort.LIDD, DependenceSort.LCDD,
    DependenceSort.PARAMETER_IN, DependenceSort.PARAMETER_OUT, DependenceSort.SUMMARY,
])


class Slice(Graph):
    """切片结果（构造完成后冻结）"""

    def __init__(self, graph: Graph, node: Node, variable: Union[Variable, str]):
        super().__init__()
        self.criterion = SliceCriterion(node, variable)
        self.source = graph
        self._create(graph)
        self.freeze()

    @property
    def criterion_node(self) -> Node:
        return self.criterion.node

    @property
    def criterion_variable(self):
        return self.criterion.variable

    def _create(self, graph: Graph):
        node = self.criterion.node
        if not graph.contains_node(node):
            logger.warning(f"切片准则节点 {node.id} 不在图中")
            return

        if self.criterion.is_defined():
            self._traverse_backward(graph, node, SLICE_SORTS)
        elif self.criterion.is_used():
            self.add_node(node)
            for edge in graph.get_incoming_edges_for_node(node.id):
                if (edge.is_def_use() or edge.is_parameter()) and self.criterion.matches(edge.variable):
                    self._traverse_backward(graph, graph[edge.src], SLICE_SORTS)
                    self.add_edge(edge)
        else:
            logger.info(f"节点 {node.id} 既未定义也未使用变量 {self.criterion.variable_name}，切片为空")

    def _traverse_backward(self, graph: Graph, start: Node, sorts):
        self.add_node(start)
        stack = [start]
        while stack:
            current = stack.pop()
            for edge in graph.get_incoming_edges_for_node(current.id):
                if edge.sort not in sorts:
                    continue
                src = graph[edge.src]
                if self.add_node(src):
                    stack.append(src)
                self.add_edge(edge)

    def get_nodes_by_line(self):
        return sorted(self.nodes, key=lambda n: (n.line, n.id))

    def to_text(self) -> str:
        lines = [f"----- Slice ({self.criterion_node.id}, {self.criterion.variable_name}) -----"]
        for node in sorted(self.nodes, key=lambda n: n.id):
            lines.append(node.to_text())
        lines.append("-" * 30)
        return '\n'.join(lines)

    def __str__(self):
        return self.to_text()


class DDClosure(Slice):
    """只沿数据依赖反向可达的子图"""

    def _create(self, graph: Graph):
        if graph.contains_node(self.criterion.node):
            self._traverse_backward(graph, self.criterion.node, DD_CLOSURE_SORTS)


class Slicer:
    """对同一个图反复切片；每个 (节点, 变量) 只计算一次"""

    def __init__(self, graph: Graph):
        self.graph = graph
        self._lock = threading.Lock()
        self._slices: Dict[object, Slice] = {}

    def slice_on(self, node: Node, variable: Union[Variable, str]) -> Slice:
        key = SliceCriterion(node, variable).key
        with self._lock:
            cached = self._slices.get(key)
        if cached is not None:
            return cached
        result = Slice(self.graph, node, variable)
        with self._lock:
            return self._slices.setdefault(key, result)

    def __len__(self):
        return len(self._slices)


def slice_on(graph: Graph, node: Node, variable: Union[Variable, str]) -> Slice:
    """对graph以 (node, variable) 为准则做后向切片"""
    return Slice(graph, node, variable)


def dd_closure(graph: Graph, node: Node) -> DDClosure:
    """node沿数据依赖反向可达的节点"""
    return DDClosure(graph, node, '')

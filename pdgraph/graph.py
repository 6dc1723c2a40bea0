#!/usr/bin/env python3
"""
图数据结构模块

提供图元素、有序元素集合以及图的基础数据结构和操作。
节点和边分别保存在以编号为键的表中，边只记录端点编号，通过所属图解析
"""

from collections import deque
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Set, TypeVar

import networkx as nx

from .errors import GraphError, ImmutableGraphError


class GraphElement:
    """图元素基类，相等性和哈希都只取决于编号"""

    def __init__(self, element_id: int):
        self.id = element_id

    def __eq__(self, other):
        if not isinstance(other, GraphElement):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)


E = TypeVar('E', bound=GraphElement)


class ElementSet(Generic[E]):
    """
    保持插入顺序、按编号去重的元素集合
    """

    def __init__(self, elements: Iterable[E] = ()):
        self._items: Dict[int, E] = {}
        for elem in elements:
            self.add(elem)

    def add(self, elem: E) -> bool:
        if elem.id in self._items:
            return False
        self._items[elem.id] = elem
        return True

    def remove(self, elem: E) -> bool:
        return self._items.pop(elem.id, None) is not None

    def get(self, element_id: int) -> Optional[E]:
        return self._items.get(element_id)

    def first(self) -> Optional[E]:
        return next(iter(self._items.values()), None)

    def ids(self) -> Set[int]:
        return set(self._items)

    def union(self, other: 'ElementSet[E]') -> 'ElementSet[E]':
        result = ElementSet(self)
        for elem in other:
            result.add(elem)
        return result

    def intersection(self, other: 'ElementSet[E]') -> 'ElementSet[E]':
        return ElementSet(e for e in self if e in other)

    def difference(self, other: 'ElementSet[E]') -> 'ElementSet[E]':
        return ElementSet(e for e in self if e not in other)

    def subset_equal(self, other: 'ElementSet[E]') -> bool:
        """self ⊆ other"""
        return all(e in other for e in self)

    def subset(self, other: 'ElementSet[E]') -> bool:
        """self ⊊ other"""
        return len(self) < len(other) and self.subset_equal(other)

    def __contains__(self, elem) -> bool:
        if isinstance(elem, GraphElement):
            return elem.id in self._items
        return elem in self._items

    def __iter__(self) -> Iterator[E]:
        return iter(list(self._items.values()))

    def __len__(self):
        return len(self._items)

    def __bool__(self):
        return bool(self._items)

    def __eq__(self, other):
        if not isinstance(other, ElementSet):
            return NotImplemented
        return set(self._items) == set(other._items)

    def __repr__(self):
        return f"ElementSet({list(self._items)})"


class Edge(GraphElement):
    """图的边基类，只保存端点编号"""

    def __init__(self, edge_id: int, src: int, dst: int, sort):
        super().__init__(edge_id)
        self.src = src
        self.dst = dst
        self.sort = sort

    @property
    def label(self) -> str:
        return self.sort.value

    def endpoints(self):
        return self.src, self.dst

    def copy_with(self, edge_id: int, src: int, dst: int) -> 'Edge':
        """以新的编号和端点复制边（克隆时使用）"""
        return Edge(edge_id, src, dst, self.sort)

    def __repr__(self):
        return f"{type(self).__name__}({self.id}: {self.src} -> {self.dst}, {self.label})"


class Graph:
    """程序分析图"""

    def __init__(self):
        """初始化图"""
        self._nodes: Dict[int, GraphElement] = {}
        self._edges: Dict[int, Edge] = {}
        self._incoming: Dict[int, Dict[int, Edge]] = {}
        self._outgoing: Dict[int, Dict[int, Edge]] = {}
        self._frozen = False

    # ---- 基本操作 ----

    def _check_mutable(self):
        if self._frozen:
            raise ImmutableGraphError(f"{type(self).__name__} 已冻结，不允许修改")

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_node(self, node) -> bool:
        """添加节点，已存在时返回False"""
        self._check_mutable()
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        self._incoming[node.id] = {}
        self._outgoing[node.id] = {}
        return True

    def add_edge(self, edge: Edge) -> bool:
        """添加边，两个端点必须已在图中"""
        self._check_mutable()
        if edge.id in self._edges:
            return False
        if edge.src not in self._nodes or edge.dst not in self._nodes:
            raise GraphError(f"边 {edge!r} 的端点不在图中")
        self._edges[edge.id] = edge
        self._outgoing[edge.src][edge.id] = edge
        self._incoming[edge.dst][edge.id] = edge
        return True

    def remove_node(self, node) -> bool:
        """删除节点及其所有关联边；节点不存在时什么也不做"""
        self._check_mutable()
        node_id = node.id if isinstance(node, GraphElement) else node
        if node_id not in self._nodes:
            return False
        for edge in list(self._incoming[node_id].values()) + list(self._outgoing[node_id].values()):
            self.remove_edge(edge)
        del self._nodes[node_id]
        del self._incoming[node_id]
        del self._outgoing[node_id]
        return True

    def remove_edge(self, edge: Edge) -> bool:
        """删除边；边不存在时什么也不做"""
        self._check_mutable()
        if edge.id not in self._edges:
            return False
        edge = self._edges.pop(edge.id)
        self._outgoing[edge.src].pop(edge.id, None)
        self._incoming[edge.dst].pop(edge.id, None)
        return True

    def contains_node(self, node) -> bool:
        node_id = node.id if isinstance(node, GraphElement) else node
        return node_id in self._nodes

    def contains_edge(self, edge: Edge) -> bool:
        return edge.id in self._edges

    def __contains__(self, elem) -> bool:
        if isinstance(elem, Edge):
            return self.contains_edge(elem)
        return self.contains_node(elem)

    # ---- 查询 ----

    @property
    def nodes(self) -> List:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def node_set(self) -> ElementSet:
        return ElementSet(self._nodes.values())

    def edge_set(self) -> ElementSet:
        return ElementSet(self._edges.values())

    def get_node_by_id(self, node_id: int):
        """通过ID获取节点，不存在时返回None"""
        return self._nodes.get(node_id)

    def get_edge_by_id(self, edge_id: int) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def __getitem__(self, node_id: int):
        """支持通过graph[id]的方式获取节点"""
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(f"Node with id {node_id} not found")
        return node

    def get_incoming_edges_for_node(self, node_id: int) -> List[Edge]:
        """获取指定节点的入边"""
        return list(self._incoming.get(node_id, {}).values())

    def get_outgoing_edges_for_node(self, node_id: int) -> List[Edge]:
        """获取指定节点的出边"""
        return list(self._outgoing.get(node_id, {}).values())

    def get_predecessors(self, node_id: int) -> List:
        preds = []
        for edge in self.get_incoming_edges_for_node(node_id):
            node = self._nodes[edge.src]
            if node not in preds:
                preds.append(node)
        return preds

    def get_successors(self, node_id: int) -> List:
        succs = []
        for edge in self.get_outgoing_edges_for_node(node_id):
            node = self._nodes[edge.dst]
            if node not in succs:
                succs.append(node)
        return succs

    def in_degree(self, node_id: int) -> int:
        return len(self._incoming.get(node_id, {}))

    def out_degree(self, node_id: int) -> int:
        return len(self._outgoing.get(node_id, {}))

    def is_branch(self, node_id: int) -> bool:
        """出边多于一条的节点"""
        return self.out_degree(node_id) > 1

    def is_join(self, node_id: int) -> bool:
        """入边多于一条的节点"""
        return self.in_degree(node_id) > 1

    def get_edges(self, src: int, dst: int) -> List[Edge]:
        return [e for e in self.get_outgoing_edges_for_node(src) if e.dst == dst]

    def src_node(self, edge: Edge):
        return self._nodes[edge.src]

    def dst_node(self, edge: Edge):
        return self._nodes[edge.dst]

    def get_edges_by_sort(self, *sorts) -> List[Edge]:
        return [e for e in self._edges.values() if e.sort in sorts]

    def merge(self, other: 'Graph'):
        """并入另一个图的全部节点和边"""
        for node in other.nodes:
            self.add_node(node)
        for edge in other.edges:
            self.add_edge(edge)

    # ---- 路径与变换 ----

    def reverse(self) -> 'Graph':
        """返回反向图（边对象为新建的反向副本，编号不变）"""
        reversed_graph = Graph()
        for node in self.nodes:
            reversed_graph.add_node(node)
        for edge in self.edges:
            reversed_graph.add_edge(edge.copy_with(edge.id, edge.dst, edge.src))
        return reversed_graph

    def has_path_avoiding_nodes(self, start: int, end: int, avoid_nodes: Set[int],
                                edge_filter: Optional[Callable[[Edge], bool]] = None) -> bool:
        """
        检查从start到end是否存在一条路径，该路径不经过avoid_nodes中的任何节点
        
        Args:
            start: 起始节点ID
            end: 终止节点ID
            avoid_nodes: 要避开的节点ID集合
            edge_filter: 只沿使其返回True的边前进
            
        Returns:
            bool: 是否存在满足条件的路径
        """
        if start == end:
            return True
        if start in avoid_nodes or end in avoid_nodes:
            return False

        queue = deque([start])
        visited = {start}
        while queue:
            current = queue.popleft()
            for edge in self.get_outgoing_edges_for_node(current):
                if edge_filter is not None and not edge_filter(edge):
                    continue
                if edge.dst == end:
                    return True
                if edge.dst not in visited and edge.dst not in avoid_nodes:
                    visited.add(edge.dst)
                    queue.append(edge.dst)
        return False

    def reachable_from(self, start: int, forward: bool = True,
                       edge_filter: Optional[Callable[[Edge], bool]] = None) -> List[int]:
        """从start出发（含start）可达的节点编号，按BFS发现顺序"""
        order = [start]
        visited = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            edges = (self.get_outgoing_edges_for_node(current) if forward
                     else self.get_incoming_edges_for_node(current))
            for edge in edges:
                if edge_filter is not None and not edge_filter(edge):
                    continue
                nxt = edge.dst if forward else edge.src
                if nxt not in visited:
                    visited.add(nxt)
                    order.append(nxt)
                    queue.append(nxt)
        return order

    def to_networkx(self, edge_filter: Optional[Callable[[Edge], bool]] = None,
                    reverse: bool = False) -> nx.DiGraph:
        """转换成networkx有向图（平行边合并），节点为编号"""
        g = nx.DiGraph()
        g.add_nodes_from(self._nodes)
        for edge in self._edges.values():
            if edge_filter is not None and not edge_filter(edge):
                continue
            if reverse:
                g.add_edge(edge.dst, edge.src)
            else:
                g.add_edge(edge.src, edge.dst)
        return g

    def __len__(self):
        return len(self._nodes)

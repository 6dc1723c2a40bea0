#!/usr/bin/env python3
"""
基本块划分

首节点：入口的第一个后继、汇合节点（入度>1）、分支节点（出度>1）的直接后继、
只经fall边到达的节点（如未解析的跳转之后的语句），入口本身除外。
每个基本块从首节点开始沿true边延伸，直到下一个首节点或出口
"""

import logging
from typing import List, Set

from .errors import GraphError

logger = logging.getLogger(__name__)


class BasicBlock:
    """基本块：以首节点开头的一串直线执行的CFG节点"""

    def __init__(self, block_id: int, leader):
        self.id = block_id
        self.leader = leader
        self.nodes = [leader]

    def add(self, node):
        self.nodes.append(node)

    @property
    def node_ids(self) -> List[int]:
        return [n.id for n in self.nodes]

    def __contains__(self, node_id) -> bool:
        if hasattr(node_id, 'id'):
            node_id = node_id.id
        return any(n.id == node_id for n in self.nodes)

    def __len__(self):
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def to_text(self) -> str:
        return f"Block {self.id}: " + ' '.join(str(i) for i in self.node_ids)

    def __repr__(self):
        return f"BasicBlock({self.id}, {self.node_ids})"


def collect_leaders(cfg) -> List:
    """按节点编号顺序返回所有首节点"""
    leaders = []
    start_succ = cfg.get_true_successor(cfg.entry)
    for node in sorted(cfg.nodes, key=lambda n: n.id):
        if node.id in (cfg.entry.id, cfg.exit.id):
            continue
        if start_succ is not None and node.id == start_succ.id:
            leaders.append(node)
        elif cfg.is_join(node.id):
            leaders.append(node)
        elif all(edge.is_fall_through() for edge in cfg.get_incoming_edges_for_node(node.id)):
            leaders.append(node)
        elif any(cfg.is_branch(pred.id) for pred in cfg.get_predecessors(node.id)
                 if pred.id != cfg.entry.id):
            leaders.append(node)
    return leaders


def partition(cfg) -> List[BasicBlock]:
    """把CFG划分为基本块"""
    leaders = collect_leaders(cfg)
    leader_ids: Set[int] = {n.id for n in leaders}
    assigned: Set[int] = set()
    blocks: List[BasicBlock] = []

    for number, leader in enumerate(leaders, start=1):
        block = BasicBlock(number, leader)
        if leader.id in assigned:
            raise GraphError(f"节点 {leader.id} 同时属于多个基本块")
        assigned.add(leader.id)

        node = cfg.get_true_successor(leader)
        while node is not None and node.id not in leader_ids and node.id != cfg.exit.id:
            if node.id in assigned:
                raise GraphError(f"节点 {node.id} 同时属于多个基本块")
            block.add(node)
            assigned.add(node.id)
            node = cfg.get_true_successor(node)
        blocks.append(block)

    logger.debug(f"{cfg.name}: {len(blocks)} 个基本块")
    return blocks

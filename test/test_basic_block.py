#!/usr/bin/env python3
"""
基本块划分测试
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from jmodel import Block, BreakStatement, WhileStatement
from pdgraph import AnalysisContext, CFGBuilder, NodeSort, partition

from builders import (
    assign, if_else_method, lit, local, make_method, node_at, node_of, nodes_of, ref, sum_loop_method,
)


def _check_partition(cfg):
    """每个非入口/出口节点恰好属于一个基本块"""
    blocks = cfg.get_basic_blocks()
    ids = [i for block in blocks for i in block.node_ids]
    assert len(ids) == len(set(ids))
    assert set(ids) == {n.id for n in cfg.nodes} - {cfg.entry.id, cfg.exit.id}
    return blocks


def test_loop_blocks():
    method, vars_ = sum_loop_method()
    cfg = CFGBuilder(AnalysisContext()).construct_cfg(method)
    blocks = _check_partition(cfg)

    fin = nodes_of(cfg, NodeSort.FORMAL_IN)[0]
    for_node = node_at(cfg, 3, NodeSort.FOR)
    body = node_at(cfg, 4)
    updater = node_of(cfg, vars_['updater'])
    ret_node = node_at(cfg, 6)
    fout = nodes_of(cfg, NodeSort.FORMAL_OUT)[0]

    assert [b.node_ids for b in blocks] == [
        [fin.id, node_at(cfg, 2).id, node_at(cfg, 3, NodeSort.LOCAL_DECLARATION).id],
        [for_node.id],
        [body.id, updater.id],
        [ret_node.id, fout.id],
    ]
    assert cfg.get_basic_block(updater).leader is body
    assert updater in cfg.get_basic_block(updater)


def test_if_else_blocks():
    method, _ = if_else_method()
    cfg = CFGBuilder(AnalysisContext()).construct_cfg(method)
    blocks = _check_partition(cfg)

    merge = nodes_of(cfg, NodeSort.MERGE)[0]
    leaders = [b.leader for b in blocks]
    assert node_at(cfg, 4) in leaders
    assert node_at(cfg, 5) in leaders
    assert merge in leaders
    assert cfg.get_basic_block(node_at(cfg, 6)).leader is merge


def test_blocks_are_cached_until_cfg_changes():
    method, _ = if_else_method()
    cfg = CFGBuilder(AnalysisContext()).construct_cfg(method)
    assert cfg.get_basic_blocks() is cfg.get_basic_blocks()
    assert [b.node_ids for b in partition(cfg)] == [b.node_ids for b in cfg.get_basic_blocks()]


def test_statement_after_unresolved_break_starts_a_block():
    """
    1 while (x) {
    2     break nowhere;
    3     y = 1;
    4 }
    """
    x, y = local('x'), local('y')
    loop = WhileStatement(ref(x), Block([
        BreakStatement('nowhere', line=2),
        assign(y, lit(1), line=3),
    ]), line=1)
    cfg = CFGBuilder(AnalysisContext()).construct_cfg(make_method('m', [], 'void', [loop]))
    blocks = _check_partition(cfg)

    after = node_at(cfg, 3)
    assert [e.is_fall_through() for e in cfg.get_incoming_edges_for_node(after.id)] == [True]
    assert cfg.get_basic_block(after).leader is after
    assert len(blocks) == 3

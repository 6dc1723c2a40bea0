#!/usr/bin/env python3
"""
可视化测试（只生成dot源码，不调用graphviz可执行程序）
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from pdgraph import (
    AnalysisContext, CFGBuilder, PDGBuilder, SDGBuilder,
    visualize_cfg, visualize_pdg, visualize_sdg, visualize_slice,
)
from pdgslicer import slice_on

from builders import calls_class, node_at, sum_loop_method


def test_visualize_cfg_and_pdg():
    method, vars_ = sum_loop_method()
    context = AnalysisContext()
    cfg = CFGBuilder(context).construct_cfg(method)
    dot = visualize_cfg([cfg], 'loop', pdf=False, dot_format=False)
    assert f"{cfg.entry.id} -> " in dot.source
    assert 'bold' in dot.source

    pdg = PDGBuilder(context).construct_pdg(method)
    source = visualize_pdg([pdg], 'loop', pdf=False, dot_format=False).source
    assert 'LCDD' not in source
    assert 'color=red' in source
    assert 'color=blue' in source


def test_visualize_sdg_and_slice(tmp_path):
    cls, methods = calls_class()
    sdg = SDGBuilder(AnalysisContext()).construct_sdg(methods['caller'])
    dot = visualize_sdg(sdg, str(tmp_path / 'sdg'), pdf=False, dot_format=True)
    assert 'cluster_0' in dot.source and 'cluster_1' in dot.source
    assert (tmp_path / 'sdg.dot').read_text(encoding='utf-8') == dot.source

    result = slice_on(sdg, node_at(sdg, 12), 'y')
    source = visualize_slice([result], 'slice', pdf=False, dot_format=False).source
    assert 'fillcolor=yellow' in source

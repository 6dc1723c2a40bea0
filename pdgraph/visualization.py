#!/usr/bin/env python3
"""
可视化模块

把CFG/PDG/ClDG/SDG/切片导出为graphviz图
"""

import html
from typing import Iterable, List

from graphviz import Digraph

from .edge import DependenceSort


def _new_digraph(filename: str) -> Digraph:
    dot = Digraph(comment=filename, strict=True)
    dot.attr(rankdir='TB')
    dot.attr('node', fontname='Arial')
    dot.attr('edge', fontname='Arial')
    return dot


def _add_node(dot: Digraph, graph, node):
    code_label = html.escape(node.text)
    label = f"<{code_label}<SUB>{node.line}</SUB>>"
    if node.is_entry():
        dot.node(str(node.id), label=label, shape='ellipse', style='filled', fillcolor='lightgreen')
    elif node.is_exit():
        dot.node(str(node.id), label=label, shape='ellipse', style='filled', fillcolor='lightblue')
    elif node.is_parameter():
        dot.node(str(node.id), label=label, shape='box', style='rounded,dashed')
    elif node.is_merge():
        dot.node(str(node.id), label='', shape='point')
    elif graph.is_branch(node.id):
        dot.node(str(node.id), shape='diamond', label=label)
    else:
        dot.node(str(node.id), shape='rectangle', label=label)


def _add_dependence(dot: Digraph, edge):
    src, dst = str(edge.src), str(edge.dst)
    if edge.is_cd():
        # 控制依赖边：蓝色实线，false/fall分支为橙色
        color = 'blue' if edge.sort == DependenceSort.CD_TRUE else 'orange'
        dot.edge(src, dst, color=color, style='solid', label=edge.label)
    elif edge.sort == DependenceSort.CLASS_MEMBER:
        dot.edge(src, dst, color='grey', style='bold')
    elif edge.is_parameter() or edge.is_summary():
        dot.edge(src, dst, label=str(edge.variable or ''), color='green', style='dashed')
    else:
        # 数据依赖边：红色虚线
        label = str(edge.variable or '')
        if edge.sort not in (DependenceSort.LIDD, DependenceSort.LCDD):
            label = f"{label} ({edge.label})"
        dot.edge(src, dst, label=label, style='dotted', color='red')


def _output(dot: Digraph, filename: str, pdf: bool, dot_format: bool, view: bool) -> Digraph:
    # 保存.dot文件
    if dot_format:
        with open(f"{filename}.dot", 'w', encoding='utf-8') as f:
            f.write(dot.source)

    # 生成PDF文件
    if pdf:
        dot.render(filename, view=view, cleanup=True)
    return dot


def visualize_cfg(cfgs: Iterable, filename: str = 'CFG', pdf: bool = False,
                  dot_format: bool = True, view: bool = False) -> Digraph:
    """可视化CFG"""
    dot = _new_digraph(filename)
    for cfg in cfgs:
        for node in cfg.nodes:
            _add_node(dot, cfg, node)
        for edge in cfg.edges:
            attrs = {'label': edge.label}
            if edge.is_loop_back():
                attrs['style'] = 'bold'
            elif edge.is_fall_through():
                attrs['style'] = 'dashed'
                attrs['color'] = 'grey'
            dot.edge(str(edge.src), str(edge.dst), **attrs)
    return _output(dot, filename, pdf, dot_format, view)


def visualize_pdg(pdgs: Iterable, filename: str = 'PDG', pdf: bool = False,
                  dot_format: bool = True, view: bool = False) -> Digraph:
    """可视化PDG（同样适用于ClDG、SDG和切片）"""
    dot = _new_digraph(filename)
    for pdg in pdgs:
        for node in pdg.nodes:
            _add_node(dot, pdg, node)
        for edge in pdg.edges:
            _add_dependence(dot, edge)
    return _output(dot, filename, pdf, dot_format, view)


def visualize_sdg(sdg, filename: str = 'SDG', pdf: bool = False,
                  dot_format: bool = True, view: bool = False) -> Digraph:
    """可视化SDG，每个PDG放在单独的子图中"""
    dot = _new_digraph(filename)
    for index, pdg in enumerate(sdg.pdgs):
        with dot.subgraph(name=f"cluster_{index}") as sub:
            sub.attr(label=html.escape(pdg.name), style='dashed')
            for node in pdg.nodes:
                _add_node(sub, sdg, node)
    for edge in sdg.edges:
        _add_dependence(dot, edge)
    return _output(dot, filename, pdf, dot_format, view)


def visualize_slice(slices: List, filename: str = 'Slice', pdf: bool = False,
                    dot_format: bool = True, view: bool = False) -> Digraph:
    """可视化切片，切片准则节点高亮显示"""
    dot = visualize_pdg(slices, filename, pdf=False, dot_format=False)
    for sl in slices:
        dot.node(str(sl.criterion_node.id), style='filled', fillcolor='yellow')
    return _output(dot, filename, pdf, dot_format, view)

#!/usr/bin/env python3
"""
SDG / ClDG 测试
"""

import os
import sys
import threading
import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from jmodel import ClassKind, ExpressionStatement, JavaClass, JavaField, Name
from pdgraph import (
    AnalysisConfig, AnalysisContext, BuildState, CFGConstructionError, ClDGBuilder, DependenceSort,
    GraphError, NodeSort, PDGCache, SDGBuilder, SummaryEdgeBuilder,
)

from builders import (
    UnknownStatement, assign, binary, call, calls_class, lit, local, make_method, node_at, nodes_of,
    param, ref, ret,
)


def test_void_call_has_parameter_in_only():
    """f(int a){ g(a); }：一条parameter-in边，没有parameter-out边"""
    cls, methods = calls_class()
    sdg = SDGBuilder(AnalysisContext()).construct_sdg(methods['f'])

    assert sdg.has_pdg('demo.Calls#f(int)')
    assert sdg.has_pdg('demo.Calls#g(int)')
    assert not sdg.has_pdg('demo.Calls#caller(int)')

    params_in = sdg.get_edges_by_sort(DependenceSort.PARAMETER_IN)
    assert sdg.get_edges_by_sort(DependenceSort.PARAMETER_OUT) == []
    (edge,) = params_in
    ain, fin = sdg[edge.src], sdg[edge.dst]
    assert ain.sort == NodeSort.ACTUAL_IN
    assert fin is sdg.get_pdg('demo.Calls#g(int)').get_formal_ins()[0]
    assert edge.variable == fin.uses[0]
    assert sdg.get_pdg_of(ain).key == 'demo.Calls#f(int)'
    assert sdg.get_summary_edges() == []


def test_summary_edges_reach_fixed_point():
    cls, methods = calls_class()
    context = AnalysisContext()
    sdg = SDGBuilder(context).construct_sdg(methods['caller'])

    (param_out,) = sdg.get_edges_by_sort(DependenceSort.PARAMETER_OUT)
    assert sdg[param_out.src].sort == NodeSort.FORMAL_OUT
    assert sdg[param_out.dst].payload.ordinal == -1

    (summary,) = sdg.get_summary_edges()
    assert sdg[summary.src].sort == NodeSort.ACTUAL_IN
    assert summary.dst == param_out.dst

    assert SummaryEdgeBuilder(context).compute(sdg) == 0
    assert len(sdg.get_summary_edges()) == 1
    # 独立的PDG中不添加summary边
    assert sdg.get_pdg('demo.Calls#caller(int)').get_edges_by_sort(DependenceSort.SUMMARY) == []


def test_transitive_summary():
    """
    int inner(int a) { return a; }
    int outer(int b) { return inner(b); }
    int top(int c) { return outer(c); }
    """
    cls = JavaClass('demo.T')
    a = param('a', owner='demo.T#inner(int)')
    inner = make_method('inner', [a], 'int', [ret(ref(a), line=1)], cls)
    b = param('b', owner='demo.T#outer(int)')
    outer = make_method('outer', [b], 'int', [ret(call(inner, ref(b), line=2), line=2)], cls)
    c = param('c', owner='demo.T#top(int)')
    top = make_method('top', [c], 'int', [ret(call(outer, ref(c), line=3), line=3)], cls)

    sdg = SDGBuilder(AnalysisContext()).construct_sdg(top)
    assert len(sdg.pdgs) == 3
    assert len(sdg.get_summary_edges()) == 2
    owners = {sdg.get_pdg_of(sdg[e.src]).key for e in sdg.get_summary_edges()}
    assert owners == {'demo.T#outer(int)', 'demo.T#top(int)'}


def test_recursion_is_not_expanded():
    cls = JavaClass('demo.Rec')
    n = param('n', owner='demo.Rec#fact(int)')
    fact = make_method('fact', [n], 'int', [], cls)
    fact.body.statements.append(ret(call(fact, binary(ref(n), '-', lit(1)), line=2), line=2))

    sdg = SDGBuilder(AnalysisContext()).construct_sdg(fact)
    assert len(sdg.pdgs) == 1
    assert nodes_of(sdg, NodeSort.ACTUAL_IN) == []
    assert sdg.get_parameter_edges() == []
    assert sdg.binding_ok


def test_accessed_field_pdg():
    cls = JavaClass('demo.Fields')
    field = cls.add_field(JavaField('limit', 'int', initializer=lit(10), line=1))
    x = param('x', owner='demo.Fields#m(int)')
    method = make_method('m', [x], 'void', [assign(x, Name(field.variable), line=2)], cls)

    sdg = SDGBuilder(AnalysisContext()).construct_sdg(method)
    assert sdg.has_pdg('demo.Fields#limit')

    sdg = SDGBuilder(AnalysisContext(AnalysisConfig(include_field_pdgs=False))).construct_sdg(method)
    assert not sdg.has_pdg('demo.Fields#limit')


def test_sdg_for_class_shares_cache():
    cls, methods = calls_class()
    cache = PDGCache()
    builder = SDGBuilder(AnalysisContext(), cache)
    sdg = builder.construct_sdg_for_class(cls)

    assert len(sdg.pdgs) == 4
    assert len(cache) == 4
    assert cache.state('demo.Calls#g(int)') == BuildState.DONE
    assert cache.state('demo.Calls#missing()') == BuildState.UNVISITED
    # 同一个缓存上再次构建时复用已有的PDG
    again = builder.construct_sdg(methods['caller'])
    assert again.get_pdg('demo.Calls#caller(int)') is sdg.get_pdg('demo.Calls#caller(int)')
    assert 'ParamIn' in sdg.to_text()


def test_sdg_skips_units_that_fail():
    """bad() 的CFG无法构建：记录失败并跳过，good() 照常并入SDG"""
    cls = JavaClass('demo.Broken')
    bad = make_method('bad', [], 'void', [UnknownStatement(line=2)], cls, line=1)
    make_method('good', [], 'void', [
        ExpressionStatement(call(bad, line=4), line=4),
        assign(local('x'), lit(1), line=5),
    ], cls, line=3)
    builder = SDGBuilder(AnalysisContext())

    sdg = builder.construct_sdg_for_class(cls)
    assert sdg.has_pdg('demo.Broken#good()')
    assert not sdg.has_pdg('demo.Broken#bad()')
    assert list(sdg.failures) == ['demo.Broken#bad()']
    assert isinstance(sdg.failures['demo.Broken#bad()'], CFGConstructionError)
    assert sdg.get_parameter_edges() == []
    assert builder.cache.state('demo.Broken#bad()') == BuildState.UNVISITED

    rooted = builder.construct_sdg(cls.methods[1])
    assert [pdg.key for pdg in rooted.pdgs] == ['demo.Broken#good()']
    assert list(rooted.failures) == ['demo.Broken#bad()']


def test_pdg_cache_builds_once_across_threads():
    cache = PDGCache()
    calls = []
    results = []

    def build():
        calls.append(1)
        time.sleep(0.05)
        return object()

    def worker():
        results.append(cache.get_or_build('k', build))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 4
    assert all(r is results[0] for r in results)
    assert cache.get('k') is results[0]


def test_pdg_cache_reentry_and_failure():
    cache = PDGCache()

    def reenter():
        return cache.get_or_build('k', reenter)

    with pytest.raises(GraphError):
        cache.get_or_build('k', reenter)
    assert cache.state('k') == BuildState.UNVISITED

    def fail():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        cache.get_or_build('j', fail)
    assert cache.get_or_build('j', lambda: 'ok') == 'ok'
    cache.clear()
    assert len(cache) == 0


def test_cldg():
    cls, methods = calls_class()
    cls.add_field(JavaField('count', 'int', initializer=lit(0), line=20))
    cldg = ClDGBuilder(AnalysisContext()).construct_cldg(cls)

    assert cldg.entry.sort == NodeSort.CLASS_ENTRY
    members = cldg.get_edges_by_sort(DependenceSort.CLASS_MEMBER)
    assert len(members) == 5
    assert {cldg[e.dst].sort for e in members} == {NodeSort.FIELD_ENTRY, NodeSort.METHOD_ENTRY}
    assert cldg.get_pdg('demo.Calls#count') is not None
    assert cldg.failures == {}
    assert cldg.binding_ok
    # 保守的summary边
    assert len(cldg.get_edges_by_sort(DependenceSort.SUMMARY)) == 1


def test_cldg_without_conservative_summaries():
    cls, _ = calls_class()
    config = AnalysisConfig(conservative_summaries=False)
    cldg = ClDGBuilder(AnalysisContext(config)).construct_cldg(cls)
    assert cldg.get_edges_by_sort(DependenceSort.SUMMARY) == []


def test_interface_entry():
    cldg = ClDGBuilder(AnalysisContext()).construct_cldg(JavaClass('demo.I', kind=ClassKind.INTERFACE))
    assert cldg.entry.sort == NodeSort.INTERFACE_ENTRY
    assert cldg.pdgs == []


def test_unresolved_binding_propagates():
    cls = JavaClass('demo.U')
    x = param('x', owner='demo.U#m(int)')
    make_method('m', [x], 'void', [assign(x, Name(None, 'ghost'), line=1)], cls)

    cldg = ClDGBuilder(AnalysisContext()).construct_cldg(cls)
    assert not cldg.binding_ok
    sdg = SDGBuilder(AnalysisContext()).construct_sdg_for_class(cls)
    assert not sdg.binding_ok
    assert node_at(sdg, 1).defs == [x]

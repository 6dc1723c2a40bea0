#!/usr/bin/env python3
"""
CFG构建测试
"""

import os
import sys
import networkx as nx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from jmodel import (
    Block, BreakStatement, CatchClause, ContinueStatement, DoStatement, EnhancedForStatement,
    ExpressionStatement, ForStatement, IfStatement, JavaClass, JavaField, LabeledStatement,
    MethodCall, SwitchCase, SwitchStatement, TryStatement, WhileStatement,
)
from pdgraph import (
    AnalysisConfig, AnalysisContext, CFGBuilder, CFGConstructionError, FlowSort, NodeSort,
    RETURN_ORDINAL,
)

from builders import (
    UnknownStatement, assign, binary, call, declare, if_else_method, lit, local, make_method,
    node_at, node_of, nodes_of, param, post_inc, ref, ret, sum_loop_method,
)


def _build(method, config=None):
    return CFGBuilder(AnalysisContext(config)).construct_cfg(method)


def _acyclic_without_loop_back(cfg):
    return nx.is_directed_acyclic_graph(cfg.to_networkx(edge_filter=lambda e: not e.is_loop_back()))


def test_if_else_has_one_branch_and_one_merge():
    """if/else：只有一个分支节点，两条分支在一个merge节点汇合"""
    method, _ = if_else_method()
    cfg = _build(method)

    if_node = node_at(cfg, 3, NodeSort.IF)
    branches = [n for n in cfg.nodes if cfg.is_branch(n.id)]
    assert branches == [if_node]
    assert len(nodes_of(cfg, NodeSort.MERGE)) == 1

    sorts = sorted(e.sort.value for e in cfg.get_outgoing_edges_for_node(if_node.id))
    assert sorts == ['false', 'true']
    assert cfg.get_true_successor(if_node) is node_at(cfg, 4)
    assert cfg.get_false_successor(if_node) is node_at(cfg, 5)
    assert _acyclic_without_loop_back(cfg)


def test_method_entry_and_parameters():
    """入口 -> formal-in（参数流边）-> 方法体；非void方法在出口前有formal-out"""
    method, vars_ = if_else_method()
    cfg = _build(method)

    assert cfg.entry.sort == NodeSort.METHOD_ENTRY
    assert cfg.exit.sort == NodeSort.METHOD_EXIT
    (fin,) = nodes_of(cfg, NodeSort.FORMAL_IN)
    (fout,) = nodes_of(cfg, NodeSort.FORMAL_OUT)
    assert cfg.get_flow(cfg.entry, fin).sort == FlowSort.PARAMETER
    assert fin.defs == [vars_['x']]
    assert fin.uses[0].name.startswith('$')
    assert fout.uses == [method.return_variable]
    assert fout.payload.ordinal == RETURN_ORDINAL
    assert cfg.get_true_successor(fout) is cfg.exit
    assert cfg.entry.payload.formal_ins == [fin.id]
    assert cfg.entry.payload.formal_outs == [fout.id]

    # return 只有一条通往formal-out的true边（fall边与之重复）
    ret_node = node_at(cfg, 6)
    assert [e.sort for e in cfg.get_outgoing_edges_for_node(ret_node.id)] == [FlowSort.TRUE]
    assert ret_node.defs == [method.return_variable]


def test_for_loop_back_edge():
    """for：最后一个更新表达式回到条件节点，回边标记循环节点"""
    method, vars_ = sum_loop_method()
    cfg = _build(method)

    for_node = node_at(cfg, 3, NodeSort.FOR)
    updater = node_of(cfg, vars_['updater'])
    back_edges = cfg.get_loop_back_edges()
    assert len(back_edges) == 1
    assert back_edges[0].src == updater.id
    assert back_edges[0].dst == for_node.id
    assert back_edges[0].loop_back == for_node.id
    assert cfg.is_branch(for_node.id)
    assert cfg.get_false_successor(for_node) is node_at(cfg, 6)
    assert updater.defs == [vars_['i']] and updater.uses == [vars_['i']]
    assert _acyclic_without_loop_back(cfg)


def test_reachable_nodes():
    method, vars_ = sum_loop_method()
    cfg = _build(method)
    for_node = node_at(cfg, 3, NodeSort.FOR)
    body = node_at(cfg, 4)

    backward = {n.id for n in cfg.get_backward_reachable_nodes(for_node, include_loop_back=False)}
    assert body.id not in backward
    assert cfg.entry.id in backward
    assert body.id in {n.id for n in cfg.get_backward_reachable_nodes(for_node)}

    forward = cfg.get_forward_reachable_nodes(for_node, include_loop_back=False)
    assert forward[0] is for_node
    assert cfg.exit in forward

    # 到达end后不再继续
    stopped = {n.id for n in cfg.get_forward_reachable_nodes(cfg.entry, end=for_node)}
    assert for_node.id in stopped and body.id not in stopped


def test_while_break_and_continue():
    """
    while (i < n) {
        if (i == 3) break;
        if (i == 5) continue;
        i++;
    }
    x = i;
    """
    i, n, x = local('i'), local('n'), local('x')
    brk, cont = BreakStatement(line=3), ContinueStatement(line=5)
    loop = WhileStatement(binary(ref(i), '<', ref(n)), Block([
        IfStatement(binary(ref(i), '==', lit(3)), brk, line=2),
        IfStatement(binary(ref(i), '==', lit(5)), cont, line=4),
        ExpressionStatement(post_inc(i), line=6),
    ]), line=1)
    cfg = _build(make_method('m', [], 'void', [loop, assign(x, ref(i), line=8)]))

    while_node = node_at(cfg, 1, NodeSort.WHILE)
    break_node = node_at(cfg, 3, NodeSort.BREAK)
    continue_node = node_at(cfg, 5, NodeSort.CONTINUE)
    after = node_at(cfg, 8)

    assert cfg.get_true_successor(break_node) is after
    assert cfg.get_fall_through_successor(break_node) is not None
    assert cfg.get_flow(continue_node, while_node).loop_back == while_node.id
    assert cfg.get_flow(node_at(cfg, 6), while_node).loop_back == while_node.id
    assert cfg.get_false_successor(while_node) is after
    assert _acyclic_without_loop_back(cfg)


def test_continue_in_for_goes_to_updater():
    """for中的continue先到更新表达式（非回边），更新表达式再回到条件"""
    i, n, s = local('i'), local('n'), local('s')
    updater = post_inc(i)
    loop = ForStatement([declare(i, lit(0), line=1)], binary(ref(i), '<', ref(n)), [updater], Block([
        IfStatement(binary(ref(i), '==', lit(2)), ContinueStatement(line=2), line=2),
        assign(s, ref(i), '+=', line=3),
    ]), line=1)
    cfg = _build(make_method('m', [], 'void', [loop]))

    for_node = node_at(cfg, 1, NodeSort.FOR)
    continue_node = node_at(cfg, 2, NodeSort.CONTINUE)
    updater_node = node_of(cfg, updater)

    edge = cfg.get_flow(continue_node, updater_node)
    assert edge.is_true() and not edge.is_loop_back()
    assert cfg.get_flow(updater_node, for_node).loop_back == for_node.id
    assert len(cfg.get_loop_back_edges()) == 1


def test_do_while_back_edge():
    """do-while：条件的true边回到循环体入口"""
    i, n, x = local('i'), local('n'), local('x')
    loop = DoStatement(Block([ExpressionStatement(post_inc(i), line=2)]),
                       binary(ref(i), '<', ref(n)), line=3)
    cfg = _build(make_method('m', [], 'void', [assign(i, lit(0), line=1), loop, assign(x, ref(i), line=4)]))

    do_node = node_at(cfg, 3, NodeSort.DO)
    body = node_at(cfg, 2)
    assert cfg.get_true_successor(node_at(cfg, 1)) is body
    edge = cfg.get_flow(do_node, body)
    assert edge.is_true() and edge.loop_back == do_node.id
    assert cfg.get_false_successor(do_node) is node_at(cfg, 4)
    assert _acyclic_without_loop_back(cfg)


def test_enhanced_for():
    """增强for：循环节点定义迭代变量，循环体回到循环节点"""
    v, arr, total = local('v'), local('arr', 'int[]'), local('total')
    loop = EnhancedForStatement(v, ref(arr), Block([assign(total, ref(v), '+=', line=2)]), line=1)
    cfg = _build(make_method('m', [], 'void', [loop]))

    for_node = node_at(cfg, 1, NodeSort.FOR)
    assert for_node.defs == [v] and for_node.uses == [arr]
    assert cfg.get_flow(node_at(cfg, 2), for_node).loop_back == for_node.id


def test_switch_with_default():
    """
    switch (k) {
        case 1: a = 1;
        case 2: a = 2; break;
        default: a = 3;
    }
    """
    k, a = local('k'), local('a')
    stmt = SwitchStatement(ref(k), [
        SwitchCase(lit(1), [assign(a, lit(1), line=2)], line=2),
        SwitchCase(lit(2), [assign(a, lit(2), line=3), BreakStatement(line=3)], line=3),
        SwitchCase(None, [assign(a, lit(3), line=4)], line=4),
    ], line=1)
    cfg = _build(make_method('m', [], 'void', [stmt]))

    switch_node = node_at(cfg, 1, NodeSort.SWITCH)
    case1 = node_at(cfg, 2, NodeSort.SWITCH_CASE)
    case2 = node_at(cfg, 3, NodeSort.SWITCH_CASE)
    default = node_at(cfg, 4, NodeSort.SWITCH_DEFAULT)
    a1 = node_at(cfg, 2, NodeSort.ASSIGNMENT)
    a2 = node_at(cfg, 3, NodeSort.ASSIGNMENT)
    merge = nodes_of(cfg, NodeSort.MERGE)[0]

    assert switch_node.payload.default_node == default.id
    assert case1.uses == [k]
    assert cfg.get_true_successor(switch_node) is case1
    assert cfg.get_false_successor(switch_node) is merge
    assert len([e for e in cfg.get_outgoing_edges_for_node(switch_node.id) if e.is_false()]) == 1
    assert cfg.get_false_successor(case1) is case2
    assert cfg.get_false_successor(case2) is default
    # case 1 没有break，落入 case 2 的语句
    assert cfg.get_flow(a1, a2) is not None
    assert cfg.get_true_successor(node_at(cfg, 3, NodeSort.BREAK)) is merge


def test_try_catch_finally():
    """
    try { a = 1; } catch (Exception e) { a = 0; } finally { b = 1; }
    c = a;
    """
    a, b, c = local('a'), local('b'), local('c')
    e = local('e', 'Exception')
    stmt = TryStatement(Block([assign(a, lit(1), line=2)]),
                        [CatchClause(e, Block([assign(a, lit(0), line=4)]), line=3)],
                        Block([assign(b, lit(1), line=6)], line=5), line=1)
    cfg = _build(make_method('m', [], 'void', [stmt, assign(c, ref(a), line=7)]))

    try_node = node_at(cfg, 1, NodeSort.TRY)
    catch_node = node_at(cfg, 3, NodeSort.CATCH)
    finally_node = node_at(cfg, 5, NodeSort.FINALLY)
    assert cfg.has_try_statement()
    assert try_node.payload.catches == [catch_node.id]
    assert try_node.payload.finally_node == finally_node.id
    assert cfg.get_true_successor(try_node) is node_at(cfg, 2)
    assert cfg.get_false_successor(try_node) is catch_node

    exception_param = cfg.get_true_successor(catch_node)
    assert exception_param.sort == NodeSort.FORMAL_IN
    assert exception_param.defs == [e]
    assert cfg.get_true_successor(exception_param) is node_at(cfg, 4)

    # 正常结束、catch结束、没有匹配的catch都经过finally
    assert {n.id for n in cfg.get_predecessors(finally_node.id)} == \
        {node_at(cfg, 2).id, node_at(cfg, 4).id, catch_node.id}


def test_labeled_break():
    """
    outer: while (p) {
        while (q) { break outer; }
    }
    x = 1;
    """
    p, q, x = local('p', 'boolean'), local('q', 'boolean'), local('x')
    inner = WhileStatement(ref(q), Block([BreakStatement('outer', line=3)]), line=2)
    outer = LabeledStatement('outer', WhileStatement(ref(p), Block([inner]), line=1), line=1)
    cfg = _build(make_method('m', [], 'void', [outer, assign(x, lit(1), line=5)]))

    label_node = node_at(cfg, 1, NodeSort.LABEL)
    outer_loop = node_at(cfg, 1, NodeSort.WHILE)
    assert cfg.get_true_successor(label_node) is outer_loop
    assert cfg.get_true_successor(node_at(cfg, 3, NodeSort.BREAK)) is node_at(cfg, 5)
    assert cfg.binding_ok


def test_break_with_unknown_label_is_soft_failure():
    x = local('x')
    loop = WhileStatement(ref(x), Block([BreakStatement('nowhere', line=2)]), line=1)
    cfg = _build(make_method('m', [], 'void', [loop]))
    assert not cfg.binding_ok
    assert cfg.exit in cfg.get_forward_reachable_nodes(cfg.entry)


def test_unresolved_call_binding():
    """无法解析的调用不产生调用节点，只记录为未解析"""
    x = local('x')
    unresolved = MethodCall('foo', [], binding=None, line=1)
    cfg = _build(make_method('m', [], 'void', [assign(x, unresolved, line=1)]))
    assert not cfg.binding_ok
    assert unresolved in cfg.unresolved
    assert cfg.get_call_nodes() == []
    assert node_at(cfg, 1).defs == [x]


def test_expanded_call_nodes():
    """项目内调用展开为 actual-in -> 调用 -> actual-out -> 语句"""
    cls = JavaClass('demo.A')
    lst = param('lst', 'List')
    callee = make_method('fill', [lst], 'int', [ret(lit(1), line=2)], cls, line=1)
    items, k = local('items', 'List'), local('k')
    caller = make_method('m', [], 'void', [assign(k, call(callee, ref(items), line=5), line=5)], cls)
    cfg = _build(caller)

    (call_node,) = cfg.get_call_nodes()
    assert call_node.payload.expanded
    assert call_node.payload.callee is callee
    (ain,) = nodes_of(cfg, NodeSort.ACTUAL_IN)
    assert ain.uses == [items]
    assert call_node.payload.actual_ins == [ain.id]

    outs = {cfg[i].payload.ordinal: cfg[i] for i in call_node.payload.actual_outs}
    # 非基本类型的实参有自己的actual-out
    assert outs[0].defs == [items]
    assert outs[RETURN_ORDINAL].defs[0] in node_at(cfg, 5, NodeSort.ASSIGNMENT).uses

    assert cfg.get_true_successor(ain) is call_node
    assert cfg.get_true_successor(node_at(cfg, 5, NodeSort.ASSIGNMENT)) is cfg.exit


def test_recursive_call_is_merged():
    """自递归调用不展开：实参的使用移到调用节点上"""
    cls = JavaClass('demo.R')
    n = param('n', owner='demo.R#fact(int)')
    fact = make_method('fact', [n], 'int', [], cls)
    fact.body.statements.append(ret(call(fact, binary(ref(n), '-', lit(1)), line=2), line=2))
    cfg = _build(fact)

    assert nodes_of(cfg, NodeSort.ACTUAL_IN) == []
    (call_node,) = cfg.get_call_nodes()
    assert not call_node.payload.expanded
    assert call_node.uses == [n]
    result = call_node.defs[0]
    assert result.name.endswith('!fact')
    assert result in node_at(cfg, 2, NodeSort.RETURN).uses
    assert n not in node_at(cfg, 2, NodeSort.RETURN).uses


def test_create_actual_nodes_disabled():
    cls = JavaClass('demo.B')
    g = make_method('g', [param('v')], 'void', [], cls)
    a = local('a')
    caller = make_method('m', [], 'void', [ExpressionStatement(call(g, ref(a), line=1), line=1)], cls)
    cfg = _build(caller, AnalysisConfig(create_actual_nodes=False))
    assert nodes_of(cfg, NodeSort.ACTUAL_IN) == []
    assert cfg.get_call_nodes()[0].uses == [a]


def test_merged_call_uses_every_argument():
    """y = a + f(a)：语句已经使用a，调用节点仍然使用实参中的a"""
    cls = JavaClass('demo.M')
    f = make_method('f', [param('v')], 'int', [], cls)
    a, y = local('a'), local('y')
    stmt = assign(y, binary(ref(a), '+', call(f, ref(a), line=1)), line=1)
    cfg = _build(make_method('m', [], 'void', [stmt], cls), AnalysisConfig(create_actual_nodes=False))

    (call_node,) = cfg.get_call_nodes()
    assert call_node.uses == [a]
    statement = node_at(cfg, 1, NodeSort.ASSIGNMENT)
    assert statement.uses == [a, call_node.defs[0]]
    assert statement.defs == [y]
    assert cfg.get_true_successor(call_node) is statement


def test_field_cfg():
    cls = JavaClass('demo.F')
    field = cls.add_field(JavaField('count', 'int', initializer=lit(3), line=2))
    cfg = CFGBuilder(AnalysisContext()).construct_field_cfg(field)

    assert cfg.entry.sort == NodeSort.FIELD_ENTRY
    assert cfg.exit.sort == NodeSort.FIELD_EXIT
    (decl,) = nodes_of(cfg, NodeSort.FIELD_DECLARATION)
    assert decl.defs == [field.variable]
    assert cfg.get_true_successor(cfg.entry) is decl
    assert cfg.get_true_successor(decl) is cfg.exit


def test_construct_cfgs_reports_failures():
    """单个方法失败时其它成员照常构建"""
    cls = JavaClass('demo.Broken')
    make_method('bad', [], 'void', [UnknownStatement()], cls)
    make_method('good', [], 'void', [assign(local('x'), lit(1))], cls)
    cls.add_field(JavaField('f', 'int'))

    cfgs, failures = CFGBuilder(AnalysisContext()).construct_cfgs(cls)
    assert [cfg.name for cfg in cfgs] == ['demo.Broken#f', 'demo.Broken#good()']
    assert list(failures) == ['demo.Broken#bad()']
    assert isinstance(failures['demo.Broken#bad()'], CFGConstructionError)

    with pytest.raises(CFGConstructionError):
        CFGBuilder(AnalysisContext()).construct_cfg(cls.methods[0])


def test_clone_is_isomorphic():
    method, _ = sum_loop_method()
    cfg = _build(method)
    cloned, id_map = cfg.clone()

    assert len(cloned.nodes) == len(cfg.nodes)
    assert len(cloned.edges) == len(cfg.edges)
    assert not set(n.id for n in cloned.nodes) & set(n.id for n in cfg.nodes)
    for edge in cfg.edges:
        (copy,) = cloned.get_edges(id_map[edge.src], id_map[edge.dst])
        assert copy.sort == edge.sort
        assert copy.loop_back == (id_map[edge.loop_back] if edge.loop_back is not None else None)
    assert cloned.entry.payload.formal_ins == [id_map[i] for i in cfg.entry.payload.formal_ins]

    blocks = [[id_map[i] for i in b.node_ids] for b in cfg.get_basic_blocks()]
    assert blocks == [b.node_ids for b in cloned.get_basic_blocks()]


def test_to_text():
    method, _ = if_else_method()
    text = _build(method).to_text()
    assert 'demo.IfElse#m(int)' in text
    assert 'if (x > 0)' in text

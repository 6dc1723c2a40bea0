#!/usr/bin/env python3
"""
把语法树节点还原成简短的源代码文本，供图的文本输出和可视化使用
"""

from .ast import AstNode


def _join(nodes) -> str:
    return ', '.join(to_source(n) for n in nodes)


def to_source(node: AstNode) -> str:
    """返回节点对应的单行源代码文本（复合语句只输出头部）"""
    if node is None:
        return ''
    t = node.type

    # 表达式
    if t == 'name':
        return node.identifier or '?'
    if t == 'field_access':
        if node.receiver is None:
            return node.identifier or '?'
        return f"{to_source(node.receiver)}.{node.identifier or '?'}"
    if t == 'this':
        return 'this'
    if t == 'literal':
        return str(node.value)
    if t == 'assignment':
        return f"{to_source(node.target)} {node.operator} {to_source(node.value)}"
    if t == 'unary':
        if node.prefix:
            return f"{node.operator}{to_source(node.operand)}"
        return f"{to_source(node.operand)}{node.operator}"
    if t == 'binary':
        return f"{to_source(node.left)} {node.operator} {to_source(node.right)}"
    if t == 'instanceof':
        return f"{to_source(node.expression)} instanceof {node.type_name}"
    if t == 'conditional':
        return (f"{to_source(node.condition)} ? {to_source(node.then_expression)}"
                f" : {to_source(node.else_expression)}")
    if t == 'cast':
        return f"({node.type_name}) {to_source(node.expression)}"
    if t == 'array_access':
        return f"{to_source(node.array)}[{to_source(node.index)}]"
    if t == 'array_initializer':
        return '{' + _join(node.elements) + '}'
    if t == 'array_creation':
        dims = ''.join(f"[{to_source(d)}]" for d in node.dimensions)
        init = f" {to_source(node.initializer)}" if node.initializer else ''
        return f"new {node.element_type}{dims or '[]'}{init}"
    if t == 'method_call':
        prefix = ''
        if node.is_super:
            prefix = 'super.'
        elif node.receiver is not None:
            prefix = to_source(node.receiver) + '.'
        return f"{prefix}{node.name}({_join(node.arguments)})"
    if t == 'constructor_call':
        return f"{node.name}({_join(node.arguments)})"
    if t == 'instance_creation':
        return f"new {node.type_name}({_join(node.arguments)})"

    # 语句
    if t == 'block':
        return '{...}'
    if t == 'empty_statement':
        return ';'
    if t == 'expression_statement':
        return to_source(node.expression) + ';'
    if t == 'fragment':
        name = node.variable.name if node.variable is not None else '?'
        if node.initializer is not None:
            return f"{name} = {to_source(node.initializer)}"
        return name
    if t == 'variable_declaration':
        var_type = ''
        if node.fragments and node.fragments[0].variable is not None:
            var_type = node.fragments[0].variable.type + ' '
        return f"{var_type}{_join(node.fragments)};"
    if t == 'if_statement':
        return f"if ({to_source(node.condition)})"
    if t == 'while_statement':
        return f"while ({to_source(node.condition)})"
    if t == 'do_statement':
        return f"do ... while ({to_source(node.condition)})"
    if t == 'for_statement':
        return (f"for ({_join(node.initializers)}; {to_source(node.condition)}; "
                f"{_join(node.updaters)})")
    if t == 'enhanced_for_statement':
        name = node.variable.name if node.variable is not None else '?'
        return f"for ({name} : {to_source(node.iterable)})"
    if t == 'switch_case':
        return 'default:' if node.expression is None else f"case {to_source(node.expression)}:"
    if t == 'switch_statement':
        return f"switch ({to_source(node.expression)})"
    if t == 'break_statement':
        return f"break {node.label};" if node.label else 'break;'
    if t == 'continue_statement':
        return f"continue {node.label};" if node.label else 'continue;'
    if t == 'return_statement':
        if node.expression is None:
            return 'return;'
        return f"return {to_source(node.expression)};"
    if t == 'throw_statement':
        return f"throw {to_source(node.expression)};"
    if t == 'catch_clause':
        name = node.exception.name if node.exception is not None else '?'
        return f"catch ({name})"
    if t == 'try_statement':
        return 'try'
    if t == 'synchronized_statement':
        return f"synchronized ({to_source(node.expression)})"
    if t == 'labeled_statement':
        return f"{node.label}:"
    if t == 'assert_statement':
        return f"assert {to_source(node.expression)};"
    if t == 'type_declaration_statement':
        return f"class {node.class_name}"
    return t

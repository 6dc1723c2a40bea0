"""
Java符号模型

由外部前端（解析与绑定解析）产出、供图构建使用的抽象语法树和符号模型。
未解析的绑定以 None 表示，从不抛出异常。
"""

from .ast import AstNode
from .elements import (
    PRIMITIVE_TYPES, Variable, VariableKind, JavaField, JavaMethod, MethodKind,
    JavaClass, ClassKind,
)
from .expressions import (
    Expression, Name, FieldAccess, This, Literal, Assignment, Unary, Binary,
    InstanceOf, Conditional, Cast, ArrayAccess, ArrayInitializer, ArrayCreation,
    MethodCall, ConstructorCall, InstanceCreation,
)
from .statements import (
    Statement, Block, EmptyStatement, ExpressionStatement, Fragment,
    VariableDeclaration, IfStatement, WhileStatement, DoStatement, ForStatement,
    EnhancedForStatement, SwitchCase, SwitchStatement, BreakStatement,
    ContinueStatement, ReturnStatement, ThrowStatement, CatchClause, TryStatement,
    SynchronizedStatement, LabeledStatement, AssertStatement,
    TypeDeclarationStatement,
)
from .printer import to_source

__all__ = [
    'AstNode', 'PRIMITIVE_TYPES', 'Variable', 'VariableKind', 'JavaField',
    'JavaMethod', 'MethodKind', 'JavaClass', 'ClassKind',
    'Expression', 'Name', 'FieldAccess', 'This', 'Literal', 'Assignment', 'Unary',
    'Binary', 'InstanceOf', 'Conditional', 'Cast', 'ArrayAccess',
    'ArrayInitializer', 'ArrayCreation', 'MethodCall', 'ConstructorCall',
    'InstanceCreation',
    'Statement', 'Block', 'EmptyStatement', 'ExpressionStatement', 'Fragment',
    'VariableDeclaration', 'IfStatement', 'WhileStatement', 'DoStatement',
    'ForStatement', 'EnhancedForStatement', 'SwitchCase', 'SwitchStatement',
    'BreakStatement', 'ContinueStatement', 'ReturnStatement', 'ThrowStatement',
    'CatchClause', 'TryStatement', 'SynchronizedStatement', 'LabeledStatement',
    'AssertStatement', 'TypeDeclarationStatement',
    'to_source',
]

#!/usr/bin/env python3
"""
语句节点
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from .ast import AstNode
from .elements import Variable
from .expressions import Expression


class Statement(AstNode):
    """语句基类"""
    type = 'statement'


@dataclass(eq=False)
class Block(Statement):
    statements: List[Statement] = field(default_factory=list)
    line: int = 0
    type = 'block'


@dataclass(eq=False)
class EmptyStatement(Statement):
    line: int = 0
    type = 'empty_statement'


@dataclass(eq=False)
class ExpressionStatement(Statement):
    expression: Expression
    line: int = 0
    type = 'expression_statement'


@dataclass(eq=False)
class Fragment(AstNode):
    """变量声明片段 int a = 1 中的 a = 1；variable 为 None 表示未解析"""
    variable: Optional[Variable]
    initializer: Optional[Expression] = None
    line: int = 0
    type = 'fragment'


@dataclass(eq=False)
class VariableDeclaration(Statement):
    fragments: List[Fragment] = field(default_factory=list)
    line: int = 0
    type = 'variable_declaration'

    @classmethod
    def of(cls, variable: Variable, initializer: Optional[Expression] = None,
           line: int = 0) -> 'VariableDeclaration':
        return cls([Fragment(variable, initializer, line)], line)


@dataclass(eq=False)
class IfStatement(Statement):
    condition: Expression
    then_statement: Statement
    else_statement: Optional[Statement] = None
    line: int = 0
    type = 'if_statement'


@dataclass(eq=False)
class WhileStatement(Statement):
    condition: Expression
    body: Statement
    line: int = 0
    type = 'while_statement'


@dataclass(eq=False)
class DoStatement(Statement):
    body: Statement
    condition: Expression
    line: int = 0
    type = 'do_statement'


@dataclass(eq=False)
class ForStatement(Statement):
    """for(initializers; condition; updaters) body

    initializers 中既可以是语句（变量声明），也可以是表达式
    """
    initializers: List[Union[Statement, Expression]] = field(default_factory=list)
    condition: Optional[Expression] = None
    updaters: List[Expression] = field(default_factory=list)
    body: Statement = field(default_factory=Block)
    line: int = 0
    type = 'for_statement'


@dataclass(eq=False)
class EnhancedForStatement(Statement):
    variable: Optional[Variable]
    iterable: Expression
    body: Statement
    line: int = 0
    type = 'enhanced_for_statement'


@dataclass(eq=False)
class SwitchCase(AstNode):
    """case 分支；expression 为 None 表示 default"""
    expression: Optional[Expression]
    statements: List[Statement] = field(default_factory=list)
    line: int = 0
    type = 'switch_case'

    def is_default(self) -> bool:
        return self.expression is None


@dataclass(eq=False)
class SwitchStatement(Statement):
    expression: Expression
    cases: List[SwitchCase] = field(default_factory=list)
    line: int = 0
    type = 'switch_statement'


@dataclass(eq=False)
class BreakStatement(Statement):
    label: Optional[str] = None
    line: int = 0
    type = 'break_statement'


@dataclass(eq=False)
class ContinueStatement(Statement):
    label: Optional[str] = None
    line: int = 0
    type = 'continue_statement'


@dataclass(eq=False)
class ReturnStatement(Statement):
    expression: Optional[Expression] = None
    line: int = 0
    type = 'return_statement'


@dataclass(eq=False)
class ThrowStatement(Statement):
    expression: Expression
    line: int = 0
    type = 'throw_statement'


@dataclass(eq=False)
class CatchClause(AstNode):
    exception: Optional[Variable]
    body: Block = field(default_factory=Block)
    line: int = 0
    type = 'catch_clause'


@dataclass(eq=False)
class TryStatement(Statement):
    body: Block
    catches: List[CatchClause] = field(default_factory=list)
    finally_block: Optional[Block] = None
    line: int = 0
    type = 'try_statement'


@dataclass(eq=False)
class SynchronizedStatement(Statement):
    expression: Expression
    body: Block
    line: int = 0
    type = 'synchronized_statement'


@dataclass(eq=False)
class LabeledStatement(Statement):
    label: str
    body: Statement
    line: int = 0
    type = 'labeled_statement'


@dataclass(eq=False)
class AssertStatement(Statement):
    expression: Expression
    message: Optional[Expression] = None
    line: int = 0
    type = 'assert_statement'


@dataclass(eq=False)
class TypeDeclarationStatement(Statement):
    """方法体内的局部类声明，不参与控制流"""
    class_name: str = ''
    line: int = 0
    type = 'type_declaration_statement'

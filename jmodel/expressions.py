#!/usr/bin/env python3
"""
表达式节点

binding / variable 为 None 表示前端未能解析该绑定
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .ast import AstNode
from .elements import Variable, JavaMethod


class Expression(AstNode):
    """表达式基类"""
    type = 'expression'


@dataclass(eq=False)
class Name(Expression):
    """简单名字引用"""
    variable: Optional[Variable]
    identifier: str = ''
    line: int = 0
    type = 'name'

    def __post_init__(self):
        if not self.identifier and self.variable is not None:
            self.identifier = self.variable.name


@dataclass(eq=False)
class FieldAccess(Expression):
    """字段访问 receiver.field"""
    receiver: Optional[Expression]
    variable: Optional[Variable]
    identifier: str = ''
    line: int = 0
    type = 'field_access'

    def __post_init__(self):
        if not self.identifier and self.variable is not None:
            self.identifier = self.variable.name


@dataclass(eq=False)
class This(Expression):
    class_name: str = ''
    line: int = 0
    type = 'this'


@dataclass(eq=False)
class Literal(Expression):
    value: str
    value_type: str = ''
    line: int = 0
    type = 'literal'


@dataclass(eq=False)
class Assignment(Expression):
    """赋值，operator 为 '=' 或复合赋值运算符（如 '+='）"""
    target: Expression
    value: Expression
    operator: str = '='
    line: int = 0
    type = 'assignment'

    def is_compound(self) -> bool:
        return self.operator != '='


@dataclass(eq=False)
class Unary(Expression):
    """一元运算，prefix=False 表示后缀形式（i++）"""
    operator: str
    operand: Expression
    prefix: bool = True
    line: int = 0
    type = 'unary'

    def is_increment(self) -> bool:
        return self.operator in ('++', '--')


@dataclass(eq=False)
class Binary(Expression):
    left: Expression
    operator: str
    right: Expression
    line: int = 0
    type = 'binary'


@dataclass(eq=False)
class InstanceOf(Expression):
    expression: Expression
    type_name: str
    line: int = 0
    type = 'instanceof'


@dataclass(eq=False)
class Conditional(Expression):
    condition: Expression
    then_expression: Expression
    else_expression: Expression
    line: int = 0
    type = 'conditional'


@dataclass(eq=False)
class Cast(Expression):
    type_name: str
    expression: Expression
    line: int = 0
    type = 'cast'


@dataclass(eq=False)
class ArrayAccess(Expression):
    array: Expression
    index: Expression
    line: int = 0
    type = 'array_access'


@dataclass(eq=False)
class ArrayInitializer(Expression):
    elements: List[Expression] = field(default_factory=list)
    line: int = 0
    type = 'array_initializer'


@dataclass(eq=False)
class ArrayCreation(Expression):
    element_type: str
    dimensions: List[Expression] = field(default_factory=list)
    initializer: Optional[ArrayInitializer] = None
    line: int = 0
    type = 'array_creation'


@dataclass(eq=False)
class MethodCall(Expression):
    """方法调用 receiver.name(arguments)"""
    name: str
    arguments: List[Expression] = field(default_factory=list)
    receiver: Optional[Expression] = None
    binding: Optional[JavaMethod] = None
    is_super: bool = False
    line: int = 0
    type = 'method_call'


@dataclass(eq=False)
class ConstructorCall(Expression):
    """this(...) 或 super(...)"""
    arguments: List[Expression] = field(default_factory=list)
    binding: Optional[JavaMethod] = None
    is_super: bool = False
    line: int = 0
    type = 'constructor_call'

    @property
    def name(self) -> str:
        return 'super' if self.is_super else 'this'


@dataclass(eq=False)
class InstanceCreation(Expression):
    """new T(arguments)"""
    type_name: str
    arguments: List[Expression] = field(default_factory=list)
    binding: Optional[JavaMethod] = None
    outer: Optional[Expression] = None
    line: int = 0
    type = 'instance_creation'

    @property
    def name(self) -> str:
        return self.type_name

#!/usr/bin/env python3
"""
符号模型模块

描述类、方法、字段、变量等程序元素，以及方法签名（作为缓存键使用）
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, TYPE_CHECKING

if TYPE_CHECKING:
    from .statements import Block
    from .expressions import Expression


PRIMITIVE_TYPES = frozenset([
    'boolean', 'byte', 'char', 'short', 'int', 'long', 'float', 'double'
])


class VariableKind(Enum):
    """变量种类"""
    LOCAL = "local"
    PARAMETER = "parameter"
    FIELD = "field"
    SPECIAL = "special"      # 分析时合成的变量，名字以$开头


class ClassKind(Enum):
    """类的种类"""
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"


class MethodKind(Enum):
    """方法的种类"""
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    INITIALIZER = "initializer"


@dataclass(frozen=True)
class Variable:
    """
    变量访问
    
    同一性由 (name, owner, index) 决定：
    owner 是声明它的方法或类的限定名，index 用于区分同一方法内被遮蔽的同名局部变量
    """
    name: str
    type: str = field(default='', compare=False)
    owner: str = ''
    kind: VariableKind = field(default=VariableKind.LOCAL, compare=False)
    index: int = 0
    field_ref: Optional['JavaField'] = field(default=None, compare=False, repr=False)

    def is_primitive(self) -> bool:
        return self.type in PRIMITIVE_TYPES

    def is_field(self) -> bool:
        return self.kind == VariableKind.FIELD

    def is_special(self) -> bool:
        return self.kind == VariableKind.SPECIAL

    @property
    def qualified_name(self) -> str:
        if self.owner:
            return f"{self.owner}.{self.name}"
        return self.name

    def __str__(self):
        return self.name


@dataclass(eq=False)
class JavaField:
    """字段（包括枚举常量）"""
    name: str
    type: str = ''
    initializer: Optional['Expression'] = None
    modifiers: Set[str] = field(default_factory=set)
    is_enum_constant: bool = False
    in_project: bool = True
    line: int = 0
    declaring_class: Optional['JavaClass'] = field(default=None, repr=False)

    @property
    def class_name(self) -> str:
        return self.declaring_class.qualified_name if self.declaring_class else ''

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}#{self.name}"

    @property
    def variable(self) -> Variable:
        return Variable(self.name, self.type, self.class_name, VariableKind.FIELD,
                        field_ref=self)

    def is_static(self) -> bool:
        return 'static' in self.modifiers

    def __str__(self):
        return self.qualified_name


@dataclass(eq=False)
class JavaMethod:
    """方法、构造函数或初始化块"""
    name: str
    parameters: List[Variable] = field(default_factory=list)
    return_type: str = 'void'
    kind: MethodKind = MethodKind.METHOD
    body: Optional['Block'] = None
    modifiers: Set[str] = field(default_factory=set)
    in_project: bool = True
    line: int = 0
    declaring_class: Optional['JavaClass'] = field(default=None, repr=False)

    @property
    def class_name(self) -> str:
        return self.declaring_class.qualified_name if self.declaring_class else ''

    @property
    def signature(self) -> str:
        """方法签名：名字 + 按顺序排列的参数类型名"""
        return f"{self.name}({','.join(p.type for p in self.parameters)})"

    @property
    def qualified_name(self) -> str:
        """方法的唯一标识，用作缓存键"""
        return f"{self.class_name}#{self.signature}"

    @property
    def is_void(self) -> bool:
        if self.kind != MethodKind.METHOD:
            return True
        return self.return_type == 'void'

    def is_constructor(self) -> bool:
        return self.kind == MethodKind.CONSTRUCTOR

    def is_initializer(self) -> bool:
        return self.kind == MethodKind.INITIALIZER

    @property
    def return_variable(self) -> Variable:
        """承载返回值的合成局部变量"""
        return Variable('$' + self.name, self.return_type, self.qualified_name,
                        VariableKind.SPECIAL)

    def called_methods(self) -> List['JavaMethod']:
        """方法体内所有已解析调用的目标方法（按出现顺序去重）"""
        if self.body is None:
            return []
        callees: List[JavaMethod] = []
        seen = set()
        for node in self.body.walk():
            binding = getattr(node, 'binding', None)
            if isinstance(binding, JavaMethod) and binding.qualified_name not in seen:
                seen.add(binding.qualified_name)
                callees.append(binding)
        return callees

    def accessed_fields(self) -> List[JavaField]:
        """方法体内访问到的字段"""
        if self.body is None:
            return []
        fields: List[JavaField] = []
        for node in self.body.walk():
            var = getattr(node, 'variable', None)
            if isinstance(var, Variable) and var.field_ref is not None \
                    and var.field_ref not in fields:
                fields.append(var.field_ref)
        return fields

    def __str__(self):
        return self.qualified_name


@dataclass(eq=False)
class JavaClass:
    """类、接口或枚举"""
    qualified_name: str
    kind: ClassKind = ClassKind.CLASS
    fields: List[JavaField] = field(default_factory=list)
    methods: List[JavaMethod] = field(default_factory=list)
    inner_classes: List['JavaClass'] = field(default_factory=list)
    modifiers: Set[str] = field(default_factory=set)
    super_class: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    in_project: bool = True
    line: int = 0

    def __post_init__(self):
        for jf in self.fields:
            jf.declaring_class = self
        for jm in self.methods:
            jm.declaring_class = self

    @property
    def name(self) -> str:
        return self.qualified_name.rsplit('.', 1)[-1]

    def add_field(self, jf: JavaField) -> JavaField:
        jf.declaring_class = self
        self.fields.append(jf)
        return jf

    def add_method(self, jm: JavaMethod) -> JavaMethod:
        jm.declaring_class = self
        self.methods.append(jm)
        return jm

    def get_method(self, signature: str) -> Optional[JavaMethod]:
        for jm in self.methods:
            if jm.signature == signature:
                return jm
        return None

    def get_field(self, name: str) -> Optional[JavaField]:
        for jf in self.fields:
            if jf.name == name:
                return jf
        return None

    def __str__(self):
        return self.qualified_name

#!/usr/bin/env python3
"""
语法树节点基础模块

外部前端产出的语句/表达式树的公共基类
"""

import dataclasses
from typing import Iterator, List


class AstNode:
    """语法树节点基类

    子类均为dataclass，`type` 为类级别的节点类型标签，用法与 tree-sitter 的 node.type 相同
    """

    type = 'ast_node'

    def children(self) -> Iterator['AstNode']:
        """按字段声明顺序返回直接子节点"""
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, AstNode):
                yield value
            elif isinstance(value, (list, tuple)):
                for item in value:
                    if isinstance(item, AstNode):
                        yield item

    def walk(self) -> Iterator['AstNode']:
        """先序遍历整棵子树（包含自身）"""
        stack: List[AstNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.children())))

    @property
    def text(self) -> str:
        from .printer import to_source
        return to_source(self)

    def __str__(self):
        return self.text

#!/usr/bin/env python3
"""
切片包 - 基于PDG/SDG的后向程序切片
"""

from .models import SliceCriterion
from .slice import Slice, DDClosure, Slicer, slice_on, dd_closure
from .output_utils import get_slice_lines, format_slice, print_slice_result

# 版本信息
__version__ = "1.0.0"

# 公开的API
__all__ = [
    'SliceCriterion',
    'Slice',
    'DDClosure',
    'Slicer',
    'slice_on',
    'dd_closure',
    'get_slice_lines',
    'format_slice',
    'print_slice_result',
]

# 包的简介
__doc__ = """
切片包在PDG/ClDG/SDG上做后向切片：

使用示例：

from pdgraph import PDGBuilder
from pdgslicer import slice_on, format_slice

pdg = PDGBuilder().construct_pdg(method)
node = next(n for n in pdg.nodes if n.sort.value == 'returnSt')
result = slice_on(pdg, node, 'y')
print(format_slice(result))
"""

#!/usr/bin/env python3
"""
输出工具
"""

from typing import List, Optional

from .slice import Slice


def get_slice_lines(result: Slice) -> List[int]:
    """切片中语句节点对应的源码行号（升序，去重）"""
    return sorted({n.line for n in result.nodes if n.line > 0})


def format_slice(result: Slice, code: Optional[str] = None) -> str:
    """
    格式化切片结果
    
    Args:
        result: 切片
        code: 源代码；给出时按行号输出源码，否则输出节点文本
    """
    criterion = result.criterion
    out = [f"切片准则: 节点 {criterion.node.id} ({criterion.node.text}), "
           f"变量 {criterion.variable_name}"]
    if not result.nodes:
        out.append("切片为空")
        return '\n'.join(out)

    if code is not None:
        lines = code.split('\n')
        slice_lines = get_slice_lines(result)
        out.append(f"切片包含 {len(slice_lines)} 行代码:")
        out.append("-" * 40)
        for line_num in slice_lines:
            if 1 <= line_num <= len(lines):
                out.append(f"行{line_num:3d}: {lines[line_num - 1]}")
    else:
        out.append(f"切片包含 {len(result.nodes)} 个节点:")
        out.append("-" * 40)
        for node in result.get_nodes_by_line():
            out.append(f"行{node.line:3d}: [{node.sort.value}] {node.text}")
    return '\n'.join(out)


def print_slice_result(result: Slice, code: Optional[str] = None):
    """打印切片结果"""
    print(format_slice(result, code))
    print()

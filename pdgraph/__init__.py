"""
程序依赖图构建模块

提供控制流图(CFG)、基本块、程序依赖图(PDG)、类依赖图(ClDG)和系统依赖图(SDG)的构建和查询功能
"""

import logging
import sys

from .errors import GraphError, CFGConstructionError, ImmutableGraphError
from .config import AnalysisConfig
from .context import AnalysisContext
from .graph import GraphElement, ElementSet, Edge, Graph
from .edge import FlowSort, ControlFlow, DependenceSort, Dependence
from .node import (
    NodeSort, Node, EntryPayload, CallPayload, ParameterPayload, MergePayload,
    SwitchPayload, TryPayload, RETURN_ORDINAL,
)
from .base import BaseAnalyzer
from .cfg import CFG
from .cfg_builder import CFGBuilder
from .basic_block import BasicBlock, partition
from .cdg import CDGBuilder, post_dominator_tree
from .ddg import DDGBuilder
from .pdg import PDG, PDGBuilder
from .cldg import ClDG, ClDGBuilder
from .summary import SummaryEdgeBuilder
from .sdg import SDG, SDGBuilder, PDGCache, BuildState
from .visualization import visualize_cfg, visualize_pdg, visualize_sdg, visualize_slice


__version__ = "1.0.0"

__all__ = [
    'GraphError', 'CFGConstructionError', 'ImmutableGraphError',
    'AnalysisConfig', 'AnalysisContext',
    'GraphElement', 'ElementSet', 'Edge', 'Graph',
    'FlowSort', 'ControlFlow', 'DependenceSort', 'Dependence',
    'NodeSort', 'Node', 'EntryPayload', 'CallPayload', 'ParameterPayload',
    'MergePayload', 'SwitchPayload', 'TryPayload', 'RETURN_ORDINAL',
    'BaseAnalyzer',
    'CFG', 'CFGBuilder',
    'BasicBlock', 'partition',
    'CDGBuilder', 'post_dominator_tree', 'DDGBuilder',
    'PDG', 'PDGBuilder',
    'ClDG', 'ClDGBuilder',
    'SummaryEdgeBuilder', 'SDG', 'SDGBuilder', 'PDGCache', 'BuildState',
    'visualize_cfg', 'visualize_pdg', 'visualize_sdg', 'visualize_slice',
    'setup_logging',
]


def setup_logging(level=logging.INFO, format_string=None):
    """
    设置日志配置
    
    Args:
        level: 日志级别
        format_string: 日志格式字符串
    """
    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_string,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

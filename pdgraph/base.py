#!/usr/bin/env python3
"""
基础分析器模块

所有图构建器共享同一个分析上下文（编号计数器 + 配置）
"""

from typing import Optional

from .context import AnalysisContext


class BaseAnalyzer:
    """基础分析器"""

    def __init__(self, context: Optional[AnalysisContext] = None):
        """
        初始化分析器
        Args:
            context: 分析上下文，缺省时新建一个
        """
        self.context = context or AnalysisContext()

    @property
    def config(self):
        return self.context.config

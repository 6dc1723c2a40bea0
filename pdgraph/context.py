#!/usr/bin/env python3
"""
分析上下文

持有一次分析运行内的编号计数器和配置；编号在同一次运行中单调递增、不重复，
不同的独立运行之间可以 reset
"""

import itertools
import logging
import threading
from typing import Optional

from .config import AnalysisConfig

logger = logging.getLogger(__name__)


class AnalysisContext:
    """分析会话：线程安全的编号分配器 + 配置"""

    def __init__(self, config: Optional[AnalysisConfig] = None, start: int = 1):
        self.config = config or AnalysisConfig()
        self._start = start
        self._lock = threading.Lock()
        self._counter = itertools.count(start)

    def next_id(self) -> int:
        """分配一个新的图元素编号"""
        with self._lock:
            return next(self._counter)

    def reset(self):
        """重置计数器，开始一次新的独立分析"""
        with self._lock:
            self._counter = itertools.count(self._start)
        logger.debug("分析上下文编号计数器已重置")

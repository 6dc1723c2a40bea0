#!/usr/bin/env python3
"""
分析配置管理模块

支持从.env文件/环境变量和JSON配置文件加载
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = 'PDGRAPH_'


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class AnalysisConfig:
    """图构建配置"""

    # 调用点是否展开为actual-in/actual-out节点
    create_actual_nodes: bool = True
    # ClDG中的独立PDG是否为每个展开的调用添加保守的summary边
    conservative_summaries: bool = True
    # SDG是否同时纳入被访问的项目内字段的PDG
    include_field_pdgs: bool = True
    # 是否丢弃标记为fall的控制依赖边
    exclude_fall_through_cd: bool = False

    @classmethod
    def from_env(cls, env_path: Optional[Union[str, Path]] = None) -> 'AnalysisConfig':
        """从.env文件和环境变量创建配置，缺省项使用默认值"""
        env_path = Path(env_path) if env_path else Path.cwd() / '.env'
        if env_path.exists():
            load_dotenv(env_path, override=True)
            logger.debug(f"已加载环境配置文件: {env_path}")

        config = cls()
        for name in ('create_actual_nodes', 'conservative_summaries',
                     'include_field_pdgs', 'exclude_fall_through_cd'):
            value = os.getenv(ENV_PREFIX + name.upper())
            if value is not None:
                setattr(config, name, _parse_bool(value))
        return config

    @classmethod
    def from_json(cls, config_path: Union[str, Path]) -> 'AnalysisConfig':
        """从JSON配置文件创建配置"""
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ValueError(f"配置文件不存在: {config_path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"配置文件格式错误: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"配置文件格式错误: 顶层必须是对象 ({config_path})")

        defaults = asdict(cls())
        unknown = set(data) - set(defaults)
        if unknown:
            logger.warning(f"忽略未知配置项: {', '.join(sorted(unknown))}")
        for key, value in defaults.items():
            data.setdefault(key, value)
        return cls(**{key: data[key] for key in defaults})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

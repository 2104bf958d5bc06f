"""
配置管理模块
负责加载和管理应用配置
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from copy import deepcopy

logger = logging.getLogger(__name__)

CONFIG_ENV = 'MINI_MODIFIER_CONFIG'

FORM_KINDS = ('modify', 'redirect')

DEFAULT_FORMS: Dict[str, Dict[str, Any]] = {
    'modify': {
        'url': 'https://jsonplaceholder.typicode.com/posts/1',
        'response': '{"modified": true, "status": "intercepted"}',
        'mode': 'replace',
        'status_code': None
    },
    'redirect': {
        'source_url': '',
        'target_url': '',
        'method': 'GET'
    }
}


class Config:
    """配置管理类"""

    def __init__(self, config_path: Optional[str] = None):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径，默认读取环境变量 MINI_MODIFIER_CONFIG，
                         否则为项目根目录的 config.yaml
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_ENV) or Path(__file__).parent.parent / 'config.yaml'

        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}

        self.load_config()

    def load_config(self) -> None:
        """从 YAML 文件加载配置"""
        try:
            if self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self.config = yaml.safe_load(f) or {}
                logger.info(f'Configuration loaded from {self.config_path}')
            else:
                logger.warning(f'Configuration file not found: {self.config_path}')
                self.config = self.get_default_config()
                self.save_config()
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to load configuration: {e}')
            self.config = self.get_default_config()
        finally:
            if self.ensure_defaults():
                self.save_config()

    def save_config(self) -> None:
        """保存配置到 YAML 文件"""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(self.config, f, allow_unicode=True, default_flow_style=False)
            logger.info(f'Configuration saved to {self.config_path}')
        except OSError as e:
            logger.error(f'Failed to save configuration: {e}')

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        """返回默认配置"""
        return {
            'browser': {
                'default': 'chrome',
                'chrome_path': None,  # 自动检测
                'edge_path': None,
                'debug_port': 9222,
                'extra_args': []
            },
            'intercept': {
                'command_timeout': 10,  # 秒
                'presets_dir': None  # 默认为项目根目录的 presets
            },
            'forms': deepcopy(DEFAULT_FORMS),
            'server': {
                'host': '127.0.0.1',
                'port': 5001
            },
            'logging': {
                'level': 'INFO'
            }
        }

    def ensure_defaults(self) -> bool:
        """补全缺失的配置项（不覆盖已有值）"""
        changed = False
        for section, values in self.get_default_config().items():
            current = self.config.get(section)
            if not isinstance(current, dict):
                self.config[section] = deepcopy(values)
                changed = True
                continue
            for key, value in values.items():
                if key not in current:
                    current[key] = deepcopy(value)
                    changed = True
        return changed

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值（支持点分隔的嵌套键）

        Args:
            key: 配置键，如 'browser.debug_port'
            default: 默认值

        Returns:
            配置值
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        设置配置值（支持点分隔的嵌套键）

        Args:
            key: 配置键，如 'browser.debug_port'
            value: 配置值
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def get_form_data(self, kind: str) -> Dict[str, Any]:
        """获取保存的表单值"""
        if kind not in FORM_KINDS:
            raise ValueError(f'Unknown form: {kind}')
        data = deepcopy(DEFAULT_FORMS[kind])
        data.update(self.get(f'forms.{kind}', {}) or {})
        return data

    def save_form_data(self, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """保存表单值，只接受该表单已知的字段"""
        if kind not in FORM_KINDS:
            raise ValueError(f'Unknown form: {kind}')
        current = self.get_form_data(kind)
        for key in DEFAULT_FORMS[kind]:
            if key in data:
                current[key] = data[key]
        self.set(f'forms.{kind}', current)
        self.save_config()
        return current

    def get_log_level(self) -> int:
        level_name = str(self.get('logging.level', 'INFO')).upper()
        return getattr(logging, level_name, logging.INFO)


config = Config()

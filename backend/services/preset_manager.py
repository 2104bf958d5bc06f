"""
预设数据管理
从 presets 目录加载预定义的 URL 和响应列表
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from backend.config import config

logger = logging.getLogger(__name__)

SAVED_URLS_FILE = 'saved-urls.json'
SAVED_RESPONSES_FILE = 'saved-responses.json'


class PresetManager:
    """预设管理器"""

    def __init__(self, presets_dir: Optional[str] = None):
        """
        Args:
            presets_dir: 预设目录，默认读取配置 intercept.presets_dir，否则为项目根目录的 presets
        """
        if presets_dir is None:
            presets_dir = config.get('intercept.presets_dir') or Path(__file__).parent.parent.parent / 'presets'
        self.presets_dir = Path(presets_dir)

    def _load_list(self, filename: str, key: str) -> List[Dict[str, Any]]:
        path = self.presets_dir / filename
        if not path.exists():
            logger.debug(f'Preset file not found: {path}')
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f'Failed to load presets from {path}: {e}')
            return []

        items = data.get(key) if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def get_saved_urls(self) -> List[Dict[str, Any]]:
        """预定义 URL 列表，每项包含 url，可选 name/description"""
        return [
            {
                'name': item.get('name') or item['url'],
                'url': item['url'],
                'description': item.get('description')
            }
            for item in self._load_list(SAVED_URLS_FILE, 'savedUrls')
            if item.get('url')
        ]

    def get_saved_responses(self) -> List[Dict[str, Any]]:
        """预定义响应列表，response 统一转换为文本"""
        responses = []
        for item in self._load_list(SAVED_RESPONSES_FILE, 'savedResponses'):
            response = item.get('response')
            if response is None:
                continue
            if not isinstance(response, str):
                response = json.dumps(response, ensure_ascii=False)
            responses.append({
                'name': item.get('name') or 'Unnamed Response',
                'response': response,
                'description': item.get('description')
            })
        return responses


preset_manager = PresetManager()

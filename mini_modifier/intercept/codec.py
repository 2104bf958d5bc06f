"""
编解码工具
JSON 安全解析、CDP 响应体的 base64 转换以及响应头合并
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
CONTENT_TYPE = "content-type"


def safe_parse_json(text: Any, default: Any = None) -> Any:
    """安全解析JSON，失败时返回默认值而不抛出异常"""
    if not isinstance(text, (str, bytes, bytearray)):
        return default
    try:
        return json.loads(text)
    except (ValueError, TypeError) as e:
        logger.debug(f'Failed to parse JSON: {e}')
        return default


def is_valid_json(text: Any) -> bool:
    """判断文本是否为语法合法的JSON（合法的 null 也返回 True）"""
    if not isinstance(text, (str, bytes, bytearray)):
        return False
    try:
        json.loads(text)
    except (ValueError, TypeError):
        return False
    return True


def to_wire_text(text: str) -> str:
    """将文本转换为 Fetch.fulfillRequest 需要的 base64 字符串（UTF-8）"""
    return base64.b64encode(text.encode('utf-8')).decode('ascii')


def from_wire_text(body: str, is_encoded: bool) -> str:
    """将 Fetch.getResponseBody 的结果还原为文本

    Args:
        body: 响应体
        is_encoded: 响应体是否为 base64 编码

    Returns:
        str: 解码后的文本

    Raises:
        ValueError: base64 非法或内容不是 UTF-8 文本
    """
    if not is_encoded:
        return body or ''
    try:
        raw = base64.b64decode(body or '', validate=True)
    except binascii.Error as e:
        raise ValueError(f'Invalid base64 body: {e}') from e
    return raw.decode('utf-8')


def merge_header_list(original: Optional[List[Dict[str, str]]],
                      overrides: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    """合并响应头

    强制保留唯一的 content-type: application/json; charset=utf-8，
    其余覆盖项按名称（大小写不敏感）替换原位置或追加到末尾。
    覆盖项不能重新引入 content-type。

    Args:
        original: CDP 格式的原始响应头 [{name, value}]
        overrides: 需要覆盖的响应头

    Returns:
        list: 新的响应头列表（不修改原列表）
    """
    headers: List[Dict[str, str]] = []
    content_type_set = False
    for header in original or []:
        if header.get('name', '').lower() == CONTENT_TYPE:
            if content_type_set:
                continue
            headers.append({'name': CONTENT_TYPE, 'value': JSON_CONTENT_TYPE})
            content_type_set = True
        else:
            headers.append({'name': header.get('name', ''), 'value': header.get('value', '')})

    if not content_type_set:
        headers.append({'name': CONTENT_TYPE, 'value': JSON_CONTENT_TYPE})

    for name, value in (overrides or {}).items():
        lowered = name.lower()
        if lowered == CONTENT_TYPE:
            logger.debug('Ignoring content-type header override')
            continue
        for index, header in enumerate(headers):
            if header['name'].lower() == lowered:
                headers[index] = {'name': name, 'value': str(value)}
                break
        else:
            headers.append({'name': name, 'value': str(value)})

    return headers

"""
响应修改器
处理响应阶段暂停的交换：按 replace/merge 模式生成新响应体，
校验 JSON、确定状态码、合并响应头后 fulfill；任何异常都回退为原样继续。
"""

import json
import logging
from typing import Any, Optional

from .codec import from_wire_text, is_valid_json, merge_header_list, safe_parse_json, to_wire_text
from .rules import ModifyRule, Outcome, PausedExchange
from .transport import InterceptTransport, resume_safely

logger = logging.getLogger(__name__)

MIN_STATUS_CODE = 100
MAX_STATUS_CODE = 599
DEFAULT_STATUS_CODE = 200


def resolve_status_code(override: Any, original: Optional[int]) -> int:
    """确定最终状态码：覆盖值在 100..599 内时生效，否则沿用原状态码"""
    if isinstance(override, int) and not isinstance(override, bool) \
            and MIN_STATUS_CODE <= override <= MAX_STATUS_CODE:
        return override
    return original if original is not None else DEFAULT_STATUS_CODE


def _dump_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(',', ':'))


def _override_text(override_data: Any) -> str:
    if isinstance(override_data, str):
        return override_data
    return _dump_json(override_data)


def build_modified_body(original_text: str, rule: ModifyRule) -> Optional[str]:
    """根据规则计算新的响应体文本

    Args:
        original_text: 原始响应体
        rule: 修改规则

    Returns:
        str: 新响应体；无法合并时返回 None（调用方应原样继续）
    """
    if not rule.is_merge:
        return _override_text(rule.override_data)

    original_json = safe_parse_json(original_text)
    if not isinstance(original_json, dict):
        logger.warning('Original response is not a JSON object, falling back to replace mode')
        return _override_text(rule.override_data)

    if isinstance(rule.override_data, str):
        override_json = safe_parse_json(rule.override_data)
    else:
        override_json = rule.override_data
    if not isinstance(override_json, dict):
        logger.warning('Override data is not a JSON object, continuing without modification')
        return None

    merged = dict(original_json)
    merged.update(override_json)
    return _dump_json(merged)


class ResponseModifier:
    """响应修改器"""

    def __init__(self, transport: InterceptTransport):
        self._transport = transport

    async def handle(self, exchange: PausedExchange, rule: ModifyRule) -> Outcome:
        """处理一次暂停的交换，保证只 fulfill 或 resume 一次"""
        if not exchange.is_response or exchange.url != rule.target_url:
            return await self._resume(exchange)

        logger.info(f'Intercepting response for: {exchange.url}')
        try:
            body, is_encoded = await self._transport.get_body(exchange.tab_id, exchange.request_id)
            try:
                original_text = from_wire_text(body, is_encoded)
            except ValueError as e:
                logger.warning(f'Failed to decode response body, continuing without modification: {e}')
                return await self._resume(exchange)

            new_text = build_modified_body(original_text, rule)
            if new_text is None:
                return await self._resume(exchange)

            if not is_valid_json(new_text):
                logger.warning('Final JSON is invalid, continuing without modification')
                return await self._resume(exchange)

            status = resolve_status_code(rule.status_code, exchange.status_code)
            headers = merge_header_list(exchange.headers, rule.header_overrides)

            await self._transport.fulfill(
                exchange.tab_id,
                exchange.request_id,
                status,
                headers,
                to_wire_text(new_text)
            )
        except Exception as e:
            logger.error(f'Error modifying response for {exchange.url}: {e}')
            return await self._resume(exchange)

        logger.info(f'Successfully modified response for: {exchange.url} (status: {status})')
        return Outcome.FULFILLED

    async def _resume(self, exchange: PausedExchange) -> Outcome:
        if await resume_safely(self._transport, exchange):
            return Outcome.RESUMED
        return Outcome.FAILED

"""
请求重定向匹配
"""

import logging
from typing import Optional

from .rules import Outcome, PausedExchange, RedirectRule
from .transport import InterceptTransport, resume_safely

logger = logging.getLogger(__name__)


def method_matches(rule: RedirectRule, method: Optional[str]) -> bool:
    """规则未指定方法时匹配任意方法"""
    if rule.method is None:
        return True
    return (method or '').upper() == rule.method


def url_matches_source(request_url: str, source_url: str) -> bool:
    """判断请求URL是否匹配源URL

    依次尝试：完全相等、查询参数变体、子路径变体、前缀、子串。
    子串匹配较宽松，短源URL可能产生误匹配。
    """
    if not source_url:
        return False
    if request_url == source_url:
        return True
    if request_url.startswith(source_url + '?'):
        return True
    if request_url.startswith(source_url + '/'):
        return True
    if request_url.startswith(source_url):
        return True
    return source_url in request_url


class RedirectMatcher:
    """重定向匹配器：匹配时以新URL继续请求（浏览器原生语义，不构造 302 页面）"""

    def __init__(self, transport: InterceptTransport):
        self._transport = transport

    async def handle(self, exchange: PausedExchange, rule: Optional[RedirectRule]) -> Outcome:
        if rule is None:
            return await self._resume(exchange)

        if not method_matches(rule, exchange.method) or not url_matches_source(exchange.url, rule.source_url):
            return await self._resume(exchange)

        logger.info(f'Redirecting request: {exchange.url} -> {rule.target_url}')
        try:
            await self._transport.resume(exchange.tab_id, exchange.request_id, url=rule.target_url)
            return Outcome.REDIRECTED
        except Exception as e:
            logger.error(f'Failed to redirect request {exchange.url}: {e}')
            return await self._resume(exchange)

    async def _resume(self, exchange: PausedExchange) -> Outcome:
        if await resume_safely(self._transport, exchange):
            return Outcome.RESUMED
        return Outcome.FAILED

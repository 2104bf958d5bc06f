"""
事件路由
按标签页、再按拦截阶段分发 Fetch.requestPaused 事件
"""

import logging

from .redirect_matcher import RedirectMatcher
from .registry import SessionRegistry
from .response_modifier import ResponseModifier
from .rules import Outcome, PausedExchange
from .transport import InterceptTransport, resume_safely

logger = logging.getLogger(__name__)


class EventRouter:
    """事件路由器"""

    def __init__(self, registry: SessionRegistry, modifier: ResponseModifier,
                 matcher: RedirectMatcher, transport: InterceptTransport):
        self._registry = registry
        self._modifier = modifier
        self._matcher = matcher
        self._transport = transport

    async def dispatch(self, exchange: PausedExchange) -> Outcome:
        """分发一次暂停的交换

        没有会话的标签页不是本系统持有的连接，直接忽略；
        规则在分发时取快照，之后的配置变更不影响本次处理。
        """
        session = self._registry.get(exchange.tab_id)
        if session is None or not session.attached:
            logger.debug(f'Ignoring paused request {exchange.request_id} for untracked tab {exchange.tab_id}')
            return Outcome.IGNORED

        modify_rule = session.modify_rule
        redirect_rule = session.redirect_rule

        if exchange.is_response and modify_rule is not None:
            return await self._modifier.handle(exchange, modify_rule)
        if not exchange.is_response and redirect_rule is not None:
            return await self._matcher.handle(exchange, redirect_rule)

        if await resume_safely(self._transport, exchange):
            return Outcome.RESUMED
        return Outcome.FAILED

"""
拦截引擎装配
"""

import logging
from typing import Any, Dict, Optional

from .commands import Command, CommandDispatcher, parse_command
from .redirect_matcher import RedirectMatcher
from .registry import SessionRegistry, StatusCallback
from .response_modifier import ResponseModifier
from .router import EventRouter
from .transport import InterceptTransport

logger = logging.getLogger(__name__)


class InterceptEngine:
    """将注册表、修改器、匹配器、路由器和命令分发器绑定到一个传输上"""

    def __init__(self, transport: InterceptTransport, on_change: Optional[StatusCallback] = None):
        self.transport = transport
        self.registry = SessionRegistry(transport, on_change=on_change)
        self.modifier = ResponseModifier(transport)
        self.matcher = RedirectMatcher(transport)
        self.router = EventRouter(self.registry, self.modifier, self.matcher, transport)
        self.dispatcher = CommandDispatcher(self.registry)
        transport.set_event_handlers(self.router.dispatch, self.registry.on_external_detach)

    async def execute(self, command: Command) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(command)

    async def execute_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """解析并执行字典形式的命令

        Raises:
            CommandError: 命令格式无效
        """
        return await self.execute(parse_command(payload))

    async def shutdown(self) -> None:
        """断开所有仍在拦截的标签页"""
        for tab_id in self.registry.tab_ids():
            await self.registry.force_detach(tab_id)
        logger.info('Intercept engine shut down')

"""
调试传输接口
拦截引擎只通过该接口与浏览器通信，具体实现见 mini_modifier.cdp.cdp_client
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .rules import PausedExchange

logger = logging.getLogger(__name__)

PausedHandler = Callable[[PausedExchange], Awaitable[None]]
DetachedHandler = Callable[[str, Optional[str]], None]


class InterceptTransport(ABC):
    """网络调试传输

    所有命令失败时抛出 TransportError。
    """

    @abstractmethod
    async def attach(self, tab_id: str) -> None:
        """附加到标签页（已附加时为空操作）"""

    @abstractmethod
    async def detach(self, tab_id: str) -> None:
        """断开标签页"""

    @abstractmethod
    async def set_subscription(self, tab_id: str, patterns: List[Dict[str, str]]) -> None:
        """设置 Fetch 拦截模式，空列表表示取消订阅"""

    @abstractmethod
    async def get_body(self, tab_id: str, request_id: str) -> Tuple[str, bool]:
        """获取响应体，返回 (body, is_base64_encoded)"""

    @abstractmethod
    async def fulfill(self, tab_id: str, request_id: str, status: int,
                      headers: List[Dict[str, str]], body: str) -> None:
        """直接以给定状态码、响应头和 base64 响应体应答"""

    @abstractmethod
    async def resume(self, tab_id: str, request_id: str, url: Optional[str] = None) -> None:
        """继续请求，可选替换目标URL"""

    @abstractmethod
    def set_event_handlers(self, on_paused: PausedHandler, on_detached: DetachedHandler) -> None:
        """注册暂停事件和外部断开事件的处理函数"""


async def resume_safely(transport: InterceptTransport, exchange: PausedExchange) -> bool:
    """不做修改地继续交换，失败只记录日志

    Returns:
        bool: 是否成功发出 resume
    """
    try:
        await transport.resume(exchange.tab_id, exchange.request_id)
        return True
    except Exception as e:
        logger.error(f'Failed to resume request {exchange.request_id} on tab {exchange.tab_id}: {e}')
        return False

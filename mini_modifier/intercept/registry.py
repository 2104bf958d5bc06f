"""
标签页会话注册表
负责按标签页附加/断开调试连接、保存规则并维护 Fetch 订阅。
注册表是唯一允许 attach、detach 和修改订阅的组件。
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from .errors import TransportError
from .patterns import compose_fetch_patterns
from .rules import ModifyRule, RedirectRule, TabSession
from .transport import InterceptTransport

logger = logging.getLogger(__name__)

MODIFY = 'modify_rule'
REDIRECT = 'redirect_rule'

StatusCallback = Callable[[str, Dict[str, Any]], None]


class SessionRegistry:
    """标签页会话注册表

    同一标签页的配置变更通过 asyncio.Lock 串行化；事件处理不加锁，
    路由器在分发时读取当前规则快照。
    """

    def __init__(self, transport: InterceptTransport, on_change: Optional[StatusCallback] = None):
        """
        Args:
            transport: 调试传输
            on_change: 状态变化回调，参数为 (tab_id, status)
        """
        self._transport = transport
        self._sessions: Dict[str, TabSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._on_change = on_change

    def get(self, tab_id: str) -> Optional[TabSession]:
        return self._sessions.get(tab_id)

    def tab_ids(self) -> List[str]:
        return list(self._sessions.keys())

    def get_status(self, tab_id: str) -> Dict[str, Any]:
        """读取标签页状态（不发出任何命令）"""
        session = self._sessions.get(tab_id)
        if session is None:
            return {'modify_active': False, 'redirect_active': False, 'target_url': None}

        target_url = None
        if session.modify_rule is not None:
            target_url = session.modify_rule.target_url
        elif session.redirect_rule is not None:
            target_url = session.redirect_rule.source_url

        return {
            'modify_active': session.modify_rule is not None,
            'redirect_active': session.redirect_rule is not None,
            'target_url': target_url
        }

    async def enable_modify(self, tab_id: str, rule: ModifyRule) -> None:
        await self._enable(tab_id, MODIFY, rule)
        logger.info(f'Modify enabled for tab {tab_id}: {rule.target_url} (mode: {rule.mode.value})')

    async def disable_modify(self, tab_id: str) -> bool:
        return await self._disable(tab_id, MODIFY)

    async def enable_redirect(self, tab_id: str, rule: RedirectRule) -> None:
        await self._enable(tab_id, REDIRECT, rule)
        logger.info(f'Redirect enabled for tab {tab_id}: {rule.source_url} -> {rule.target_url} '
                    f'(method: {rule.method or "ANY"})')

    async def disable_redirect(self, tab_id: str) -> bool:
        return await self._disable(tab_id, REDIRECT)

    async def force_detach(self, tab_id: str) -> None:
        """强制断开：依次执行两条禁用路径，并兜底断开调试连接

        用于客户端状态与实际附加状态不一致的恢复场景。
        """
        tracked = tab_id in self._sessions

        for disable in (self.disable_modify, self.disable_redirect):
            try:
                await disable(tab_id)
            except TransportError as e:
                logger.warning(f'Disable during force detach failed for tab {tab_id}: {e}')

        async with self._tab_lock(tab_id):
            session = self._sessions.get(tab_id)
            if session is not None:
                await self._teardown(session)
            elif not tracked:
                try:
                    await self._transport.detach(tab_id)
                except Exception as e:
                    logger.debug(f'Force detach found nothing attached on tab {tab_id}: {e}')

        logger.info(f'Force detached tab {tab_id}')
        self._notify(tab_id)

    def on_external_detach(self, tab_id: str, reason: Optional[str] = None) -> None:
        """调试连接在外部被断开（标签页关闭、被其他客户端接管等）

        只丢弃本地状态，不再向传输发送任何命令。
        """
        session = self._sessions.pop(tab_id, None)
        if tab_id not in self._lock_users:
            self._locks.pop(tab_id, None)
        if session is None:
            logger.debug(f'External detach for untracked tab {tab_id} (reason: {reason})')
            return

        session.attached = False
        logger.warning(f'Debugger detached from tab {tab_id} externally (reason: {reason}), '
                       f'dropping modify={session.modify_rule is not None} '
                       f'redirect={session.redirect_rule is not None}')
        self._notify(tab_id)

    @asynccontextmanager
    async def _tab_lock(self, tab_id: str):
        """持有标签页锁；没有会话且无人等待时释放锁对象"""
        lock = self._locks.get(tab_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tab_id] = lock
        self._lock_users[tab_id] = self._lock_users.get(tab_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[tab_id] -= 1
            if not self._lock_users[tab_id]:
                del self._lock_users[tab_id]
                if tab_id not in self._sessions:
                    self._locks.pop(tab_id, None)

    async def _enable(self, tab_id: str, feature: str, rule: Any) -> None:
        async with self._tab_lock(tab_id):
            session = self._sessions.get(tab_id)
            if session is None:
                session = TabSession(tab_id=tab_id)
                self._sessions[tab_id] = session

            previous = getattr(session, feature)
            try:
                await self._ensure_attached(session)
                # 原子替换：同一功能在同一标签页上最多只有一条规则
                setattr(session, feature, rule)
                await self._apply_subscription(session)
                if self._sessions.get(tab_id) is not session:
                    raise TransportError(f'Tab {tab_id} was detached while enabling', tab_id)
            except BaseException:
                # 包括超时取消（CancelledError），回滚后重新抛出
                setattr(session, feature, previous)
                await self._restore(session)
                raise

        self._notify(tab_id)

    async def _disable(self, tab_id: str, feature: str) -> bool:
        async with self._tab_lock(tab_id):
            session = self._sessions.get(tab_id)
            if session is None or getattr(session, feature) is None:
                logger.debug(f'Nothing to disable for {feature} on tab {tab_id}')
                return False

            setattr(session, feature, None)
            try:
                if session.is_idle:
                    await self._teardown(session)
                else:
                    await self._apply_subscription(session)
            finally:
                self._notify(tab_id)

        logger.info(f'Disabled {feature} for tab {tab_id}')
        return True

    async def _ensure_attached(self, session: TabSession) -> None:
        if session.attached:
            return
        await self._transport.attach(session.tab_id)
        session.attached = True
        logger.info(f'Debugger attached to tab {session.tab_id}')

    async def _apply_subscription(self, session: TabSession) -> None:
        patterns = compose_fetch_patterns(session.modify_rule, session.redirect_rule)
        await self._transport.set_subscription(session.tab_id, patterns)
        logger.debug(f'Fetch patterns for tab {session.tab_id}: {patterns}')

    async def _restore(self, session: TabSession) -> None:
        """启用失败后恢复到之前的状态"""
        if session.is_idle:
            await self._teardown(session)
            return
        if not session.attached or self._sessions.get(session.tab_id) is not session:
            return
        try:
            await self._apply_subscription(session)
        except Exception as e:
            logger.error(f'Failed to restore fetch patterns for tab {session.tab_id}: {e}')

    async def _teardown(self, session: TabSession) -> None:
        """空闲会话：取消订阅并断开，失败一律忽略"""
        tab_id = session.tab_id
        if self._sessions.get(tab_id) is session:
            del self._sessions[tab_id]
        if not session.attached:
            return
        session.attached = False

        try:
            await self._transport.set_subscription(tab_id, [])
        except Exception as e:
            logger.debug(f'Fetch.disable failed for tab {tab_id}: {e}')
        try:
            await self._transport.detach(tab_id)
        except Exception as e:
            logger.debug(f'Detach failed for tab {tab_id}: {e}')
        logger.info(f'Debugger detached from idle tab {tab_id}')

    def _notify(self, tab_id: str) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(tab_id, self.get_status(tab_id))
        except Exception as e:
            logger.warning(f'Status callback failed for tab {tab_id}: {e}')

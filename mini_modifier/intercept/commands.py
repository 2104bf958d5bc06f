"""
命令接口
封闭的命令类型集合，每种命令一个 dataclass，通过类型表分发到注册表。
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .errors import CommandError
from .registry import SessionRegistry
from .rules import ModifyMode, ModifyRule, RedirectRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnableModify:
    tab_id: str
    target_url: str
    override_data: Any
    mode: ModifyMode = ModifyMode.REPLACE
    status_code: Optional[int] = None
    header_overrides: Dict[str, str] = field(default_factory=dict)

    def to_rule(self) -> ModifyRule:
        return ModifyRule(
            target_url=self.target_url,
            override_data=self.override_data,
            mode=self.mode,
            status_code=self.status_code,
            header_overrides=dict(self.header_overrides)
        )


@dataclass(frozen=True)
class DisableModify:
    tab_id: str


@dataclass(frozen=True)
class EnableRedirect:
    tab_id: str
    source_url: str
    target_url: str
    method: Optional[str] = None

    def to_rule(self) -> RedirectRule:
        return RedirectRule(source_url=self.source_url, target_url=self.target_url, method=self.method)


@dataclass(frozen=True)
class DisableRedirect:
    tab_id: str


@dataclass(frozen=True)
class ForceDetach:
    tab_id: str


@dataclass(frozen=True)
class GetStatus:
    tab_id: str


Command = Union[EnableModify, DisableModify, EnableRedirect, DisableRedirect, ForceDetach, GetStatus]

COMMAND_TYPES = (EnableModify, DisableModify, EnableRedirect, DisableRedirect, ForceDetach, GetStatus)

ACTIONS = {
    'enableModify': EnableModify,
    'disableModify': DisableModify,
    'enableRedirect': EnableRedirect,
    'disableRedirect': DisableRedirect,
    'forceDetach': ForceDetach,
    'getStatus': GetStatus,
    'enable_modify': EnableModify,
    'disable_modify': DisableModify,
    'enable_redirect': EnableRedirect,
    'disable_redirect': DisableRedirect,
    'force_detach': ForceDetach,
    'get_status': GetStatus,
}


def _field(payload: Dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return default


def _require_text(payload: Dict[str, Any], *names: str) -> str:
    value = _field(payload, *names)
    if value is None or not str(value).strip():
        raise CommandError(f'Missing required field: {names[0]}')
    return str(value).strip()


def _parse_status_code(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise CommandError(f'Invalid status code: {value!r}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CommandError(f'Invalid status code: {value!r}') from None


def _parse_mode(value: Any) -> ModifyMode:
    if isinstance(value, ModifyMode):
        return value
    try:
        return ModifyMode(str(value or ModifyMode.REPLACE.value).lower())
    except ValueError:
        raise CommandError(f'Invalid mode: {value!r}') from None


def _parse_method(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CommandError(f'Invalid method: {value!r}')
    return value


def _parse_headers(value: Any) -> Dict[str, str]:
    if not value:
        return {}
    if not isinstance(value, dict):
        raise CommandError('header_overrides must be an object')
    return {str(name): str(header_value) for name, header_value in value.items()}


def parse_command(payload: Dict[str, Any]) -> Command:
    """将请求数据解析为命令对象

    Args:
        payload: 包含 action 字段的字典（兼容 camelCase 字段名）

    Returns:
        Command: 命令对象

    Raises:
        CommandError: 未知命令或字段无效
    """
    if not isinstance(payload, dict):
        raise CommandError('Command payload must be an object')

    action = payload.get('action')
    command_type = ACTIONS.get(action)
    if command_type is None:
        raise CommandError(f'Unknown action: {action!r}')

    tab_id = _require_text(payload, 'tab_id', 'tabId')

    if command_type is EnableModify:
        override_data = _field(payload, 'override_data', 'overrideData')
        if override_data is None or (isinstance(override_data, str) and not override_data.strip()):
            raise CommandError('Missing required field: override_data')
        return EnableModify(
            tab_id=tab_id,
            target_url=_require_text(payload, 'target_url', 'targetUrl', 'url'),
            override_data=override_data.strip() if isinstance(override_data, str) else override_data,
            mode=_parse_mode(payload.get('mode')),
            status_code=_parse_status_code(_field(payload, 'status_code', 'statusCode')),
            header_overrides=_parse_headers(_field(payload, 'header_overrides', 'headers'))
        )

    if command_type is EnableRedirect:
        return EnableRedirect(
            tab_id=tab_id,
            source_url=_require_text(payload, 'source_url', 'sourceUrl'),
            target_url=_require_text(payload, 'target_url', 'targetUrl'),
            method=_parse_method(_field(payload, 'method'))
        )

    return command_type(tab_id=tab_id)


def _ok() -> Dict[str, Any]:
    return {'success': True}


def _failed(error: Exception) -> Dict[str, Any]:
    return {'success': False, 'error': str(error)}


class CommandDispatcher:
    """命令分发器"""

    def __init__(self, registry: SessionRegistry):
        self._registry = registry
        self._handlers: Dict[type, Callable[[Any], Awaitable[Dict[str, Any]]]] = {
            EnableModify: self._enable_modify,
            DisableModify: self._disable_modify,
            EnableRedirect: self._enable_redirect,
            DisableRedirect: self._disable_redirect,
            ForceDetach: self._force_detach,
            GetStatus: self._get_status,
        }
        missing = [t.__name__ for t in COMMAND_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f'Unhandled command types: {missing}')

    async def dispatch(self, command: Command) -> Dict[str, Any]:
        """执行命令，传输失败转换为 {success: False, error}"""
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f'Unsupported command: {command!r}')
        try:
            return await handler(command)
        except Exception as e:
            logger.error(f'{type(command).__name__} failed for tab {command.tab_id}: {e}')
            return _failed(e)

    async def _enable_modify(self, command: EnableModify) -> Dict[str, Any]:
        await self._registry.enable_modify(command.tab_id, command.to_rule())
        return _ok()

    async def _disable_modify(self, command: DisableModify) -> Dict[str, Any]:
        await self._registry.disable_modify(command.tab_id)
        return _ok()

    async def _enable_redirect(self, command: EnableRedirect) -> Dict[str, Any]:
        await self._registry.enable_redirect(command.tab_id, command.to_rule())
        return _ok()

    async def _disable_redirect(self, command: DisableRedirect) -> Dict[str, Any]:
        await self._registry.disable_redirect(command.tab_id)
        return _ok()

    async def _force_detach(self, command: ForceDetach) -> Dict[str, Any]:
        await self._registry.force_detach(command.tab_id)
        return _ok()

    async def _get_status(self, command: GetStatus) -> Dict[str, Any]:
        return self._registry.get_status(command.tab_id)

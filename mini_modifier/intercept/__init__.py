"""
拦截与重定向引擎
"""

from .commands import (
    Command,
    CommandDispatcher,
    DisableModify,
    DisableRedirect,
    EnableModify,
    EnableRedirect,
    ForceDetach,
    GetStatus,
    parse_command
)
from .engine import InterceptEngine
from .errors import CommandError, InterceptError, TransportError
from .registry import SessionRegistry
from .rules import ModifyMode, ModifyRule, Outcome, PausedExchange, RedirectRule, RequestStage, TabSession
from .transport import InterceptTransport

__all__ = [
    'Command',
    'CommandDispatcher',
    'DisableModify',
    'DisableRedirect',
    'EnableModify',
    'EnableRedirect',
    'ForceDetach',
    'GetStatus',
    'parse_command',
    'InterceptEngine',
    'CommandError',
    'InterceptError',
    'TransportError',
    'SessionRegistry',
    'ModifyMode',
    'ModifyRule',
    'Outcome',
    'PausedExchange',
    'RedirectRule',
    'RequestStage',
    'TabSession',
    'InterceptTransport'
]

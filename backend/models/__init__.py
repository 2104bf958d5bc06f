"""
数据模型模块
"""

from .session import (
    BrowserSession,
    SessionStatus,
    ConnectMode,
    BrowserType,
    SessionRuntime,
    SessionManager,
    session_manager
)

__all__ = [
    'BrowserSession',
    'SessionStatus',
    'ConnectMode',
    'BrowserType',
    'SessionRuntime',
    'SessionManager',
    'session_manager'
]

"""
浏览器会话数据模型
使用dataclass提供类型安全和优雅的数据访问
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum
from threading import RLock
import os


class SessionStatus(Enum):
    """会话状态枚举"""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class ConnectMode(Enum):
    """浏览器接入方式"""
    LAUNCH = "launch"
    CONNECT = "connect"


class BrowserType(Enum):
    """浏览器类型枚举"""
    CHROME = "chrome"
    EDGE = "edge"


@dataclass
class BrowserSession:
    """浏览器会话数据类"""
    id: str
    mode: ConnectMode = ConnectMode.CONNECT
    browser_type: BrowserType = BrowserType.CHROME
    start_url: Optional[str] = None
    status: SessionStatus = SessionStatus.CREATED
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    debug_port: Optional[int] = field(default=None, repr=False)
    process_pid: Optional[int] = field(default=None, repr=False)
    user_data_dir: Optional[str] = field(default=None, repr=False)
    devtools_ws_endpoint: Optional[str] = field(default=None, repr=False)
    error: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], session_id: str) -> 'BrowserSession':
        """从字典创建会话对象

        Raises:
            ValueError: mode/browser_type/debug_port 取值无效
        """
        mode = data.get('mode', 'connect')
        if isinstance(mode, str):
            mode = ConnectMode(mode)

        browser_type = data.get('browser_type', 'chrome')
        if isinstance(browser_type, str):
            browser_type = BrowserType(browser_type)

        debug_port = data.get('debug_port')
        if debug_port is not None:
            debug_port = int(debug_port)

        return cls(
            id=session_id,
            mode=mode,
            browser_type=browser_type,
            start_url=data.get('start_url') or None,
            debug_port=debug_port,
            devtools_ws_endpoint=data.get('ws_endpoint') or None
        )

    def to_dict(self, include_runtime: bool = False) -> Dict[str, Any]:
        """转换为字典（用于JSON序列化）"""
        result = {
            'id': self.id,
            'mode': self.mode.value,
            'browser_type': self.browser_type.value,
            'start_url': self.start_url,
            'status': self.status.value,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

        if include_runtime:
            result.update({
                'debug_port': self.debug_port,
                'process_pid': self.process_pid,
                'user_data_dir': self.user_data_dir,
                'ws_endpoint': self.devtools_ws_endpoint,
                'error': self.error
            })

        return result

    def update_status(self, status: SessionStatus, error: Optional[str] = None):
        """更新会话状态"""
        self.status = status
        self.updated_at = datetime.now().isoformat()
        if error:
            self.error = error

    @property
    def is_running(self) -> bool:
        return self.status == SessionStatus.RUNNING

    @property
    def is_launch_mode(self) -> bool:
        return self.mode == ConnectMode.LAUNCH

    @property
    def browser_executable_path(self) -> Optional[str]:
        """获取浏览器可执行路径，优先使用环境变量，其次配置，最后自动检测"""
        from mini_modifier.utils import get_browser_path
        from backend.config import config as app_config

        browser_key = self.browser_type.value
        env_override = os.environ.get(f'MINI_MODIFIER_{browser_key.upper()}_PATH')
        custom_path = app_config.get(f'browser.{browser_key}_path')

        for source, raw_path in (('environment', env_override), ('config', custom_path)):
            if not raw_path:
                continue
            expanded_path = os.path.expanduser(raw_path.strip())
            if os.path.exists(expanded_path):
                return expanded_path
            raise FileNotFoundError(f'Invalid {browser_key} path (source: {source}): {expanded_path}')

        auto_path = get_browser_path(browser_key)
        if auto_path:
            return auto_path

        raise FileNotFoundError(f'{browser_key} executable not found, configure browser.{browser_key}_path')


@dataclass
class SessionRuntime:
    """会话运行时数据（不可序列化的对象）"""
    loop: Any = None
    client: Any = None
    engine: Any = None
    thread: Any = None

    def has_client(self) -> bool:
        """检查是否有CDP客户端和拦截引擎"""
        return self.client is not None and self.engine is not None and self.loop is not None


class SessionManager:
    """会话管理器 - 提供优雅的会话访问接口"""

    def __init__(self):
        self._sessions: Dict[str, BrowserSession] = {}
        self._runtimes: Dict[str, SessionRuntime] = {}
        self._lock = RLock()

    def create(self, session_id: str, data: Dict[str, Any]) -> BrowserSession:
        """创建新会话"""
        with self._lock:
            session = BrowserSession.from_dict(data, session_id)
            self._sessions[session_id] = session
            return session

    def get(self, session_id: str) -> Optional[BrowserSession]:
        """获取会话（返回None而不是抛出异常）"""
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        """删除会话"""
        with self._lock:
            if session_id in self._sessions:
                del self._sessions[session_id]
                self._runtimes.pop(session_id, None)
                return True
            return False

    def list_all(self) -> list:
        """列出所有会话"""
        with self._lock:
            return list(self._sessions.values())

    def get_runtime(self, session_id: str) -> Optional[SessionRuntime]:
        """获取运行时数据"""
        with self._lock:
            return self._runtimes.get(session_id)

    def set_runtime(self, session_id: str, runtime: SessionRuntime):
        """设置运行时数据"""
        with self._lock:
            self._runtimes[session_id] = runtime

    def clear_runtime(self, session_id: str):
        """清除运行时数据"""
        with self._lock:
            self._runtimes.pop(session_id, None)


session_manager = SessionManager()

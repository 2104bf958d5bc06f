"""
拦截引擎异常定义
"""


class InterceptError(Exception):
    """拦截引擎基础异常"""


class TransportError(InterceptError):
    """底层调试传输命令失败（attach/detach/订阅/fulfill/resume）"""

    def __init__(self, message: str, tab_id: str = None):
        super().__init__(message)
        self.tab_id = tab_id


class CommandError(InterceptError, ValueError):
    """命令格式不正确或参数无效"""

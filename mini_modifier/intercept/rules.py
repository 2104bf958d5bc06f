"""
拦截规则与标签页会话数据模型
使用dataclass描述修改规则、重定向规则以及被暂停的网络交换
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# 视为"匹配任意方法"的取值
ANY_METHOD_VALUES = ('', 'ANY', '*')


class ModifyMode(Enum):
    """响应修改模式"""
    REPLACE = "replace"
    MERGE = "merge"


class RequestStage(Enum):
    """Fetch 拦截阶段（取值与 CDP Fetch.RequestStage 一致）"""
    REQUEST = "Request"
    RESPONSE = "Response"


@dataclass(frozen=True)
class ModifyRule:
    """响应修改规则"""
    target_url: str
    override_data: Any
    mode: ModifyMode = ModifyMode.REPLACE
    status_code: Optional[int] = None
    header_overrides: Dict[str, str] = field(default_factory=dict)

    @property
    def is_merge(self) -> bool:
        return self.mode == ModifyMode.MERGE


@dataclass(frozen=True)
class RedirectRule:
    """请求重定向规则

    method 为 None 表示匹配任意 HTTP 方法，否则保存为大写形式。
    """
    source_url: str
    target_url: str
    method: Optional[str] = None

    def __post_init__(self):
        method = (self.method or '').strip().upper()
        object.__setattr__(self, 'method', None if method in ANY_METHOD_VALUES else method)


@dataclass
class TabSession:
    """单个标签页的拦截会话

    两条规则都为空时会话处于空闲状态，注册表负责将其断开并移除。
    """
    tab_id: str
    attached: bool = False
    modify_rule: Optional[ModifyRule] = None
    redirect_rule: Optional[RedirectRule] = None

    @property
    def is_idle(self) -> bool:
        return self.modify_rule is None and self.redirect_rule is None


@dataclass(frozen=True)
class PausedExchange:
    """被 Fetch 域暂停的一次请求/响应"""
    tab_id: str
    request_id: str
    url: str
    method: str = "GET"
    stage: RequestStage = RequestStage.REQUEST
    status_code: Optional[int] = None
    headers: List[Dict[str, str]] = field(default_factory=list)

    @property
    def is_response(self) -> bool:
        return self.stage == RequestStage.RESPONSE

    @classmethod
    def from_cdp_event(cls, tab_id: str, params: Dict[str, Any]) -> 'PausedExchange':
        """从 Fetch.requestPaused 事件参数构造

        Args:
            tab_id: 事件来源标签页
            params: CDP 事件参数

        Returns:
            PausedExchange: 交换对象
        """
        request = params.get('request') or {}
        is_response = (
            params.get('responseStatusCode') is not None
            or params.get('responseErrorReason') is not None
        )
        return cls(
            tab_id=tab_id,
            request_id=params.get('requestId', ''),
            url=request.get('url', ''),
            method=(request.get('method') or 'GET').upper(),
            stage=RequestStage.RESPONSE if is_response else RequestStage.REQUEST,
            status_code=params.get('responseStatusCode'),
            headers=list(params.get('responseHeaders') or [])
        )


class Outcome(Enum):
    """单次交换的最终处理结果"""
    FULFILLED = "fulfilled"
    REDIRECTED = "redirected"
    RESUMED = "resumed"
    FAILED = "failed"
    IGNORED = "ignored"

"""
Fetch 拦截模式生成
根据当前生效的规则计算最小的 Fetch.enable patterns 集合
"""

from typing import Dict, List, Optional

from .rules import ModifyRule, RedirectRule, RequestStage

WILDCARD = '*'
# CDP urlPattern 中 '?' 匹配单个字符，反斜杠为转义符
SINGLE_CHAR_WILDCARD = '?'
ESCAPE = '\\'


def _escape(url: str) -> str:
    """转义 '?'，使查询字符串按字面匹配；'*' 保留为通配符"""
    return url.replace(ESCAPE, ESCAPE * 2).replace(SINGLE_CHAR_WILDCARD, ESCAPE + SINGLE_CHAR_WILDCARD)


def _pattern(url: str, stage: RequestStage) -> Dict[str, str]:
    return {'urlPattern': _escape(url), 'requestStage': stage.value}


def compose_fetch_patterns(modify_rule: Optional[ModifyRule],
                           redirect_rule: Optional[RedirectRule]) -> List[Dict[str, str]]:
    """生成拦截模式

    重定向在请求阶段拦截，响应修改在响应阶段拦截，两者互不遮挡。
    源URL不含通配符时额外追加一个尾部通配模式，覆盖路径与查询参数变体。

    Args:
        modify_rule: 当前响应修改规则
        redirect_rule: 当前重定向规则

    Returns:
        list: 有序且去重的模式列表，空列表表示应当取消订阅
    """
    candidates = []
    if redirect_rule is not None:
        source = redirect_rule.source_url
        candidates.append(_pattern(source, RequestStage.REQUEST))
        if WILDCARD not in source:
            candidates.append(_pattern(source + WILDCARD, RequestStage.REQUEST))

    if modify_rule is not None:
        candidates.append(_pattern(modify_rule.target_url, RequestStage.RESPONSE))

    patterns = []
    seen = set()
    for pattern in candidates:
        key = (pattern['urlPattern'], pattern['requestStage'])
        if key in seen:
            continue
        seen.add(key)
        patterns.append(pattern)
    return patterns

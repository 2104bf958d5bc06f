"""
拦截控制路由
按标签页启用/停用响应修改与请求重定向
"""

from flask import Blueprint, request, jsonify
import logging

from backend.models import session_manager
from backend.services.runtime_manager import run_on_runtime
from mini_modifier.intercept import CommandError, parse_command

logger = logging.getLogger(__name__)

bp = Blueprint('intercept', __name__)


def _get_runtime_or_error(session_id: str):
    """获取运行时对象或返回错误响应

    Returns:
        tuple: (runtime, error_response) - 如果成功返回(runtime, None), 否则返回(None, error_response)
    """
    session = session_manager.get(session_id)
    if session is None:
        return None, (jsonify({'success': False, 'error': 'Session not found'}), 404)

    runtime = session_manager.get_runtime(session_id)
    if not runtime or not runtime.has_client():
        return None, (jsonify({'success': False, 'error': 'Browser not connected'}), 400)

    return runtime, None


def _execute(session_id: str, payload: dict):
    """解析并在会话事件循环上执行命令"""
    runtime, error = _get_runtime_or_error(session_id)
    if error:
        return error

    try:
        command = parse_command(payload)
    except CommandError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    try:
        result = run_on_runtime(runtime, runtime.engine.execute(command))
    except TimeoutError as e:
        logger.error(f'{payload.get("action")} timed out for session {session_id}: {e}')
        return jsonify({'success': False, 'error': str(e)}), 504

    if result.get('success') is False:
        return jsonify(result), 502
    return jsonify(result)


def _command_payload(action: str, tab_id: str) -> dict:
    payload = dict(request.get_json(silent=True) or {})
    payload['action'] = action
    payload['tab_id'] = tab_id
    return payload


@bp.route('/sessions/<session_id>/tabs', methods=['GET'])
def list_tabs(session_id):
    """列出浏览器中的标签页"""
    runtime, error = _get_runtime_or_error(session_id)
    if error:
        return error
    try:
        tabs = runtime.client.list_tabs()
        for tab in tabs:
            tab.update(runtime.engine.registry.get_status(tab['tab_id']))
        return jsonify({'success': True, 'data': {'tabs': tabs, 'total': len(tabs)}})
    except Exception as e:
        logger.error(f'Failed to list tabs: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/sessions/<session_id>/command', methods=['POST'])
def execute_command(session_id):
    """执行带 action 字段的命令"""
    return _execute(session_id, request.get_json(silent=True) or {})


@bp.route('/sessions/<session_id>/tabs/<tab_id>/modify', methods=['POST'])
def enable_modify(session_id, tab_id):
    """启用响应修改"""
    return _execute(session_id, _command_payload('enableModify', tab_id))


@bp.route('/sessions/<session_id>/tabs/<tab_id>/modify', methods=['DELETE'])
def disable_modify(session_id, tab_id):
    """停用响应修改"""
    return _execute(session_id, _command_payload('disableModify', tab_id))


@bp.route('/sessions/<session_id>/tabs/<tab_id>/redirect', methods=['POST'])
def enable_redirect(session_id, tab_id):
    """启用请求重定向"""
    return _execute(session_id, _command_payload('enableRedirect', tab_id))


@bp.route('/sessions/<session_id>/tabs/<tab_id>/redirect', methods=['DELETE'])
def disable_redirect(session_id, tab_id):
    """停用请求重定向"""
    return _execute(session_id, _command_payload('disableRedirect', tab_id))


@bp.route('/sessions/<session_id>/tabs/<tab_id>/detach', methods=['POST'])
def force_detach(session_id, tab_id):
    """强制断开调试连接"""
    return _execute(session_id, _command_payload('forceDetach', tab_id))


@bp.route('/sessions/<session_id>/tabs/<tab_id>/status', methods=['GET'])
def get_status(session_id, tab_id):
    """查询标签页拦截状态"""
    return _execute(session_id, {'action': 'getStatus', 'tab_id': tab_id})

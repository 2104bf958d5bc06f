"""
浏览器会话路由
处理浏览器会话的创建、启动（启动或连接浏览器）与停止
"""

from flask import Blueprint, request, jsonify
import logging
import uuid

from backend.models import session_manager, SessionStatus
from backend.services.runtime_manager import start_runtime, stop_runtime

logger = logging.getLogger(__name__)

bp = Blueprint('browser', __name__)


def _status_listener(session_id: str):
    """标签页状态变化时推送到会话房间"""
    def emit_status(tab_id, status):
        from backend.app import socketio
        socketio.emit('status_changed', {
            'session_id': session_id,
            'tab_id': tab_id,
            'status': status
        }, room=session_id)
    return emit_status


@bp.route('/session/create', methods=['POST'])
def create_session():
    """创建新的浏览器会话"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = str(uuid.uuid4())
        session = session_manager.create(session_id, data)

        logger.info(f'Browser session created: {session_id} ({session.mode.value})')

        return jsonify({
            'success': True,
            'data': {
                'session_id': session_id,
                'session': session.to_dict()
            }
        })
    except (TypeError, ValueError) as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f'Failed to create browser session: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/session/<session_id>', methods=['GET'])
def get_session(session_id):
    """获取浏览器会话信息"""
    session = session_manager.get(session_id)
    if session is None:
        return jsonify({'success': False, 'error': 'Session not found'}), 404
    return jsonify({'success': True, 'data': session.to_dict(include_runtime=True)})


@bp.route('/session/<session_id>/start', methods=['POST'])
def start_session(session_id):
    """启动或连接浏览器，并启动拦截引擎"""
    session = session_manager.get(session_id)
    if session is None:
        return jsonify({'success': False, 'error': 'Session not found'}), 404

    if session.is_running:
        return jsonify({'success': True, 'data': session.to_dict(include_runtime=True)})

    try:
        runtime = start_runtime(session, on_status=_status_listener(session_id))
    except FileNotFoundError as e:
        logger.error(str(e))
        session.update_status(SessionStatus.ERROR, str(e))
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f'Failed to start browser session {session_id}: {e}')
        session.update_status(SessionStatus.ERROR, str(e))
        return jsonify({'success': False, 'error': str(e)}), 500

    session_manager.set_runtime(session_id, runtime)

    from backend.app import socketio
    socketio.emit('browser_connected', {
        'session_id': session_id,
        'debug_port': session.debug_port
    }, room=session_id)

    return jsonify({'success': True, 'data': session.to_dict(include_runtime=True)})


@bp.route('/session/<session_id>/stop', methods=['POST'])
def stop_session(session_id):
    """停止浏览器会话"""
    session = session_manager.get(session_id)
    if session is None:
        return jsonify({'success': False, 'error': 'Session not found'}), 404

    try:
        browser_closed = stop_runtime(session, session_manager.get_runtime(session_id))
    except Exception as e:
        logger.error(f'Failed to stop browser session: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500
    finally:
        session_manager.clear_runtime(session_id)

    from backend.app import socketio
    socketio.emit('browser_stopped', {'session_id': session_id, 'browser_closed': browser_closed}, room=session_id)
    logger.info(f'Browser session stopped: {session_id}')
    return jsonify({'success': True, 'data': session.to_dict(), 'browser_closed': browser_closed})


@bp.route('/session/<session_id>/delete', methods=['DELETE'])
def delete_session(session_id):
    """删除浏览器会话（运行中的会话需先停止）"""
    session = session_manager.get(session_id)
    if session is None:
        return jsonify({'success': False, 'error': 'Session not found'}), 404
    if session.is_running:
        return jsonify({'success': False, 'error': 'Session is running, stop it first'}), 400

    session_manager.delete(session_id)
    logger.info(f'Browser session deleted: {session_id}')
    return jsonify({'success': True, 'message': 'Session deleted successfully'})


@bp.route('/sessions', methods=['GET'])
def list_sessions():
    """获取所有浏览器会话列表"""
    sessions = sorted(
        session_manager.list_all(),
        key=lambda s: getattr(s, 'updated_at', ''),
        reverse=True
    )
    sessions_list = [s.to_dict() for s in sessions]
    return jsonify({
        'success': True,
        'data': {
            'sessions': sessions_list,
            'total': len(sessions_list)
        }
    })

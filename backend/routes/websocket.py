"""
WebSocket 路由
推送标签页拦截状态变化
"""

from flask_socketio import emit, join_room, leave_room
import logging
import time

logger = logging.getLogger(__name__)


def init_websocket(socketio):
    """初始化 WebSocket 事件处理器"""

    @socketio.on('connect')
    def handle_connect():
        """客户端连接"""
        logger.info('Client connected')
        emit('connection_response', {
            'status': 'connected',
            'message': 'Successfully connected to server'
        })

    @socketio.on('disconnect')
    def handle_disconnect():
        """客户端断开连接"""
        logger.info('Client disconnected')

    @socketio.on('join_browser_session')
    def handle_join_session(data):
        """加入浏览器会话房间，之后可收到 status_changed 事件"""
        session_id = (data or {}).get('session_id')
        if session_id:
            join_room(session_id)
            logger.info(f'Client joined browser session: {session_id}')
            emit('session_joined', {
                'session_id': session_id,
                'message': 'Joined browser session'
            })

    @socketio.on('leave_browser_session')
    def handle_leave_session(data):
        """离开浏览器会话房间"""
        session_id = (data or {}).get('session_id')
        if session_id:
            leave_room(session_id)
            logger.info(f'Client left browser session: {session_id}')
            emit('session_left', {
                'session_id': session_id,
                'message': 'Left browser session'
            })

    @socketio.on('ping')
    def handle_ping():
        """心跳检测"""
        emit('pong', {'timestamp': time.time()})

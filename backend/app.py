"""
Flask 应用主入口
Mini Modifier 控制服务
"""

from flask import Flask, jsonify
from flask_socketio import SocketIO
from flask_cors import CORS
import logging

import mini_modifier
from backend.config import config


class _SilentEndpointFilter(logging.Filter):
    """过滤无需输出到终端的请求日志"""

    def __init__(self, silent_patterns=None):
        super().__init__()
        self.silent_patterns = silent_patterns or []

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if not message:
            return True
        return not any(pattern in message for pattern in self.silent_patterns)


app = Flask(__name__)

app.json.ensure_ascii = False

CORS(app)

socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

logging.basicConfig(
    level=config.get_log_level(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
werkzeug_logger = logging.getLogger('werkzeug')
werkzeug_logger.addFilter(_SilentEndpointFilter(['/status', '/health']))

from backend.routes import api, browser, intercept
from backend.routes.websocket import init_websocket

app.register_blueprint(api.bp, url_prefix='/api')
app.register_blueprint(intercept.bp, url_prefix='/api')
app.register_blueprint(browser.bp, url_prefix='/browser')

init_websocket(socketio)


@app.route('/health')
def health_check():
    """健康检查接口"""
    return jsonify({
        'status': 'healthy',
        'version': mini_modifier.__version__
    })


@app.errorhandler(404)
def not_found(error):
    """404 错误处理"""
    return jsonify({
        'error': 'Not Found',
        'message': 'The requested resource was not found'
    }), 404


@app.errorhandler(500)
def internal_error(error):
    """500 错误处理"""
    logger.error(f'Internal Server Error: {error}')
    return jsonify({
        'error': 'Internal Server Error',
        'message': 'An unexpected error occurred'
    }), 500


def create_app():
    """应用工厂函数"""
    return app, socketio

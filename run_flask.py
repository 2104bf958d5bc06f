#!/usr/bin/env python3
"""
Flask 应用启动脚本
用于启动 Mini Modifier 控制服务
"""

import logging

from backend.app import app, socketio
from backend.config import config

logger = logging.getLogger(__name__)


def main():
    host = config.get('server.host', '127.0.0.1')
    port = int(config.get('server.port', 5001))

    logger.info('=' * 60)
    logger.info('Mini Modifier control service')
    logger.info('=' * 60)
    logger.info(f'Listening on: http://{host}:{port}')
    logger.info('Press Ctrl+C to stop the server')
    logger.info('=' * 60)

    socketio.run(
        app,
        host=host,
        port=port,
        debug=False,
        use_reloader=False,
        log_output=True,
        allow_unsafe_werkzeug=True
    )


if __name__ == '__main__':
    main()

"""
RESTful API 路由
提供预设数据、表单值和配置接口
"""

from flask import Blueprint, request, jsonify
from backend.config import config, FORM_KINDS
from backend.services.preset_manager import preset_manager
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__)


@bp.route('/config', methods=['GET'])
def get_config():
    """获取当前配置"""
    return jsonify({
        'success': True,
        'data': config.config
    })


@bp.route('/config', methods=['POST'])
def update_config():
    """更新全局配置（目前支持 browser.* 与 intercept.command_timeout）"""
    try:
        data = request.get_json() or {}
        allowed = {
            'browser.default': str,
            'browser.chrome_path': str,
            'browser.edge_path': str,
            'browser.debug_port': int,
            'intercept.command_timeout': float,
        }
        changed = False
        for key, caster in allowed.items():
            section, name = key.split('.')
            value = (data.get(section) or {}).get(name)
            if value is None:
                continue
            config.set(key, caster(value))
            changed = True
        if changed:
            config.save_config()
        return jsonify({'success': True, 'message': 'Configuration updated'})
    except (TypeError, ValueError) as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f'Failed to update config: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/presets/urls', methods=['GET'])
def get_saved_urls():
    """预定义 URL 列表"""
    urls = preset_manager.get_saved_urls()
    return jsonify({'success': True, 'data': {'urls': urls, 'total': len(urls)}})


@bp.route('/presets/responses', methods=['GET'])
def get_saved_responses():
    """预定义响应列表"""
    responses = preset_manager.get_saved_responses()
    return jsonify({'success': True, 'data': {'responses': responses, 'total': len(responses)}})


@bp.route('/forms/<kind>', methods=['GET'])
def get_form(kind):
    """获取保存的表单值"""
    if kind not in FORM_KINDS:
        return jsonify({'success': False, 'error': f'Unknown form: {kind}'}), 404
    return jsonify({'success': True, 'data': config.get_form_data(kind)})


@bp.route('/forms/<kind>', methods=['PUT'])
def save_form(kind):
    """保存表单值"""
    if kind not in FORM_KINDS:
        return jsonify({'success': False, 'error': f'Unknown form: {kind}'}), 404
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'Form data must be an object'}), 400
    try:
        saved = config.save_form_data(kind, data)
        return jsonify({'success': True, 'data': saved})
    except Exception as e:
        logger.error(f'Failed to save form {kind}: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500

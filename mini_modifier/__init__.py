"""
Mini Modifier
按标签页拦截并修改 HTTP 响应、重定向请求
"""

__version__ = '1.0.0'

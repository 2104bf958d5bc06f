"""
CDP 传输实现
"""

from .cdp_client import CDPClient

__all__ = [
    'CDPClient'
]

import os
import platform
import socket
import time
from typing import List, Optional


def get_browser_path(browser_type="chrome"):
    """根据操作系统类型和浏览器类型获取浏览器可执行文件路径

    Args:
        browser_type: 浏览器类型，支持"chrome"和"edge"，默认为"chrome"

    Returns:
        str: 浏览器可执行文件路径，如果找不到则返回None
    """
    system = platform.system()

    browser_paths = {
        "Windows": {
            "chrome": [
                r"C:\Program Files\Google\Chrome\Application\chrome.exe",
                r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe"
            ],
            "edge": [
                r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
                r"C:\Program Files\Microsoft\Edge\Application\msedge.exe"
            ]
        },
        "Darwin": {  # macOS
            "chrome": [
                "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
                "~/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
            ],
            "edge": [
                "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
                "~/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge"
            ]
        },
        "Linux": {
            "chrome": [
                "/usr/bin/google-chrome",
                "/usr/bin/chromium-browser",
                "/usr/bin/chromium"
            ],
            "edge": [
                "/usr/bin/microsoft-edge"
            ]
        }
    }

    if system in browser_paths and browser_type in browser_paths[system]:
        for path in browser_paths[system][browser_type]:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                return expanded_path

    return None


def build_launch_args(executable_path: str, debug_port: int, user_data_dir: str,
                      start_url: Optional[str] = None, extra_args: Optional[List[str]] = None) -> List[str]:
    """构建以远程调试模式启动浏览器的命令行"""
    args = [
        executable_path,
        f'--remote-debugging-port={debug_port}',
        f'--user-data-dir={user_data_dir}',
        '--no-first-run',
        '--no-default-browser-check',
        '--disable-features=TranslateUI',
        '--disable-background-timer-throttling',
        '--disable-backgrounding-occluded-windows',
        '--disable-breakpad',  # 禁用崩溃报告
    ]
    args.extend(extra_args or [])
    args.append(start_url or 'about:blank')
    return args


def wait_for_debug_port(port: int, timeout: float = 6.0) -> bool:
    """等待本地调试端口可连接"""
    if not port or port <= 0:
        return True
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=1):
                return True
        except OSError:
            time.sleep(0.2)
    return False

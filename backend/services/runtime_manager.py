"""
浏览器运行时管理
启动/连接浏览器，在后台线程中运行 asyncio 事件循环与拦截引擎，
供 Flask 路由通过 run_coroutine_threadsafe 提交命令。
"""

import asyncio
import concurrent.futures
import logging
import os
import shutil
import subprocess
import tempfile
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import psutil

from backend.config import config
from backend.models import BrowserSession, SessionRuntime, SessionStatus
from mini_modifier.cdp.cdp_client import CDPClient
from mini_modifier.intercept import InterceptEngine
from mini_modifier.utils import build_launch_args, wait_for_debug_port

logger = logging.getLogger(__name__)

StatusListener = Callable[[str, Dict[str, Any]], None]


def _command_timeout() -> float:
    return float(config.get('intercept.command_timeout', 10) or 10)


def _launch_browser_process(session: BrowserSession) -> None:
    """以远程调试模式启动浏览器进程"""
    executable_path = session.browser_executable_path
    user_data_dir = tempfile.mkdtemp(prefix="mini_modifier_")
    session.user_data_dir = user_data_dir
    if not session.debug_port:
        session.debug_port = int(config.get('browser.debug_port', 9222))

    popen_kwargs = {
        'stdout': subprocess.DEVNULL,
        'stderr': subprocess.DEVNULL,
    }
    if os.name == 'posix':
        popen_kwargs['start_new_session'] = True

    args = build_launch_args(
        executable_path,
        session.debug_port,
        user_data_dir,
        start_url=session.start_url,
        extra_args=config.get('browser.extra_args', []) or []
    )
    process = subprocess.Popen(args, **popen_kwargs)
    session.process_pid = process.pid
    logger.info(f'Browser process {process.pid} started for session {session.id} on port {session.debug_port}')

    if not wait_for_debug_port(session.debug_port, timeout=_command_timeout()):
        raise RuntimeError(f'Debug port {session.debug_port} not ready within {_command_timeout()}s')


def _start_loop_thread(session_id: str) -> Tuple[asyncio.AbstractEventLoop, threading.Thread]:
    loop = asyncio.new_event_loop()

    def run_loop():
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()
            logger.info(f'Event loop for session {session_id} closed')

    thread = threading.Thread(target=run_loop, name=f'mini-modifier-{session_id}', daemon=True)
    thread.start()
    return loop, thread


def start_runtime(session: BrowserSession, on_status: Optional[StatusListener] = None) -> SessionRuntime:
    """启动会话运行时

    Args:
        session: 浏览器会话
        on_status: 标签页状态变化回调 (tab_id, status)

    Returns:
        SessionRuntime: 运行时对象

    Raises:
        FileNotFoundError: 找不到浏览器可执行文件
        RuntimeError: 浏览器无法启动或连接
    """
    if session.is_launch_mode:
        _launch_browser_process(session)
    elif not session.debug_port:
        session.debug_port = int(config.get('browser.debug_port', 9222))

    loop, thread = _start_loop_thread(session.id)

    async def build():
        client = await CDPClient.connect_to_existing(
            port=session.debug_port,
            user_data_dir=session.user_data_dir,
            known_ws_endpoint=session.devtools_ws_endpoint
        )
        return client, InterceptEngine(client, on_change=on_status)

    try:
        client, engine = asyncio.run_coroutine_threadsafe(build(), loop).result(timeout=_command_timeout())
    except Exception:
        loop.call_soon_threadsafe(loop.stop)
        _terminate_browser(session)
        raise

    session.update_status(SessionStatus.RUNNING)
    logger.info(f'Session {session.id}: connected to browser on port {session.debug_port}')
    return SessionRuntime(loop=loop, client=client, engine=engine, thread=thread)


def run_on_runtime(runtime: SessionRuntime, coro: Awaitable, timeout: Optional[float] = None) -> Any:
    """在运行时事件循环上执行协程并等待结果

    Raises:
        TimeoutError: 超时（不会取消传输侧已发出的命令）
    """
    future = asyncio.run_coroutine_threadsafe(coro, runtime.loop)
    timeout = timeout if timeout is not None else _command_timeout()
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        future.cancel()
        raise TimeoutError(f'Command timed out after {timeout}s') from None


def stop_runtime(session: BrowserSession, runtime: Optional[SessionRuntime]) -> bool:
    """停止运行时：断开所有标签页、关闭连接并结束由本服务启动的浏览器进程

    Returns:
        bool: 浏览器进程是否已结束
    """
    if runtime is not None and runtime.has_client():
        async def shutdown():
            await runtime.engine.shutdown()
            await runtime.client.close()

        try:
            run_on_runtime(runtime, shutdown(), timeout=5)
        except Exception as e:
            logger.warning(f'Failed to close runtime client for session {session.id}: {e}')
        finally:
            runtime.loop.call_soon_threadsafe(runtime.loop.stop)

    browser_closed = _terminate_browser(session)
    session.update_status(SessionStatus.STOPPED)
    return browser_closed


def _terminate_browser(session: BrowserSession) -> bool:
    browser_closed = False
    if session.process_pid:
        try:
            proc = psutil.Process(session.process_pid)
            children = proc.children(recursive=True)
            for child in children:
                try:
                    child.terminate()
                except psutil.NoSuchProcess:
                    pass
            proc.terminate()
            _, alive = psutil.wait_procs([proc] + children, timeout=3)
            for p in alive:
                try:
                    p.kill()
                except psutil.NoSuchProcess:
                    pass
            browser_closed = True
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            browser_closed = True
        except psutil.Error as e:
            logger.warning(f'Failed to terminate browser process for session {session.id}: {e}')
        finally:
            session.process_pid = None

    if session.user_data_dir:
        shutil.rmtree(session.user_data_dir, ignore_errors=True)
        session.user_data_dir = None

    return browser_closed

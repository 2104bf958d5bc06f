import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from pyppeteer import connect, launch
from pyppeteer.errors import PyppeteerError

from mini_modifier.intercept.errors import TransportError
from mini_modifier.intercept.rules import PausedExchange
from mini_modifier.intercept.transport import DetachedHandler, InterceptTransport, PausedHandler

logger = logging.getLogger(__name__)

PAGE_TARGET = 'page'


class CDPClient(InterceptTransport):
    """DevTools Protocol客户端

    封装与浏览器的连接，为每个被拦截的标签页维护一个独立的 CDP 会话，
    实现拦截引擎所需的传输接口（attach/detach/Fetch 订阅/getBody/fulfill/resume），
    并把 Fetch.requestPaused 与断开事件转发给引擎。
    """

    def __init__(self, browser, launched: bool = False):
        """初始化CDP客户端

        Args:
            browser: Pyppeteer浏览器实例
            launched: 浏览器是否由本客户端启动（关闭时决定 close 还是 disconnect）
        """
        self.browser = browser
        self.launched = launched
        self._sessions: Dict[str, Any] = {}
        self._tasks = set()
        self._on_paused: Optional[PausedHandler] = None
        self._on_detached: Optional[DetachedHandler] = None

        browser.on('targetdestroyed', self._handle_target_destroyed)
        browser.on('disconnected', self._handle_browser_disconnected)

    @classmethod
    async def launch_browser(cls, start_url: str = None, executable_path: str = None,
                             headless: bool = False, extra_args: Optional[List[str]] = None):
        """启动浏览器并创建客户端

        Args:
            start_url: 启动后打开的页面
            executable_path: 浏览器可执行文件的路径，为None时使用 pyppeteer 自带的 Chromium
            headless: 是否以无头模式启动浏览器
            extra_args: 额外的启动参数

        Returns:
            CDPClient: 客户端实例
        """
        args = [
            '--no-first-run',
            '--no-default-browser-check',
            '--disable-dev-shm-usage',  # 避免/dev/shm空间不足
        ]
        args.extend(extra_args or [])

        browser_options = {
            'headless': headless,
            'defaultViewport': None,
            'args': args,
        }
        if executable_path:
            browser_options['executablePath'] = executable_path

        browser = await launch(browser_options)
        if start_url:
            pages = await browser.pages()
            page = pages[0] if pages else await browser.newPage()
            await page.goto(start_url)
        logger.info('Browser launched')
        return cls(browser, launched=True)

    @staticmethod
    async def _fetch_json(url: str) -> Optional[Any]:
        try:
            timeout = aiohttp.ClientTimeout(total=2)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        return None
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f'Failed to fetch {url}: {e}')
            return None

    @classmethod
    async def _get_ws_endpoint_from_version(cls, port: int) -> Optional[str]:
        data = await cls._fetch_json(f"http://127.0.0.1:{port}/json/version")
        if isinstance(data, dict):
            return data.get("webSocketDebuggerUrl")
        return None

    @staticmethod
    def _endpoint_from_devtools_file(user_data_dir: Optional[str]) -> Optional[str]:
        """从DevToolsActivePort文件读取WebSocket端点"""
        if not user_data_dir:
            return None
        file_path = Path(user_data_dir) / "DevToolsActivePort"
        if not file_path.exists():
            logger.debug(f"DevToolsActivePort file not found: {file_path}")
            return None
        try:
            lines = file_path.read_text(encoding='utf-8').strip().splitlines()
        except OSError as e:
            logger.warning(f"Error reading DevToolsActivePort file: {e}")
            return None
        if len(lines) < 2:
            logger.debug(f"DevToolsActivePort has insufficient lines: {len(lines)}")
            return None
        port = lines[0].strip()
        ws_path = lines[1].strip().lstrip('/')
        if port.isdigit() and ws_path:
            return f"ws://127.0.0.1:{port}/{ws_path}"
        logger.debug(f"Invalid DevToolsActivePort content: port={port}, ws_path={ws_path}")
        return None

    @classmethod
    async def _gather_ws_candidates(cls, port: int, user_data_dir: Optional[str],
                                    known_ws_endpoint: Optional[str] = None) -> List[str]:
        """按优先级收集WebSocket端点候选

        1. 调用方已知的端点
        2. DevToolsActivePort文件中的端点
        3. /json/version接口返回的端点
        """
        candidates: List[str] = []
        for endpoint in (
            (known_ws_endpoint or '').strip(),
            cls._endpoint_from_devtools_file(user_data_dir),
            await cls._get_ws_endpoint_from_version(port),
        ):
            if endpoint and endpoint not in candidates:
                candidates.append(endpoint)
        logger.debug(f"Gathered {len(candidates)} WebSocket candidates on port {port}")
        return candidates

    @classmethod
    async def connect_to_existing(cls, port: int = 9222, user_data_dir: Optional[str] = None,
                                  known_ws_endpoint: Optional[str] = None):
        """连接到已开启远程调试端口的浏览器

        Args:
            port: 远程调试端口
            user_data_dir: 用户数据目录（用于查找DevToolsActivePort文件）
            known_ws_endpoint: 已知的WebSocket端点

        Raises:
            RuntimeError: 所有连接方式均失败
        """
        errors = []
        browser = None

        for endpoint in await cls._gather_ws_candidates(port, user_data_dir, known_ws_endpoint):
            try:
                logger.debug(f"Trying to connect via: {endpoint}")
                browser = await connect(browserWSEndpoint=endpoint, defaultViewport=None)
                logger.info(f"Successfully connected to browser via {endpoint}")
                break
            except Exception as conn_err:
                errors.append(f"{endpoint} -> {conn_err}")

        if browser is None:
            browser_url = f"http://127.0.0.1:{port}"
            try:
                browser = await connect(browserURL=browser_url, defaultViewport=None)
                logger.info(f"Successfully connected to browser via browserURL: {browser_url}")
            except Exception as final_err:
                errors.append(f"{browser_url} -> {final_err}")
                logger.error(f"All connection attempts failed. Errors: {errors}")
                raise RuntimeError(
                    f"Cannot connect to browser remote debugging port {port}:\n"
                    + "\n".join(f"  - {err}" for err in errors)
                ) from final_err

        return cls(browser, launched=False)

    def set_event_handlers(self, on_paused: PausedHandler, on_detached: DetachedHandler) -> None:
        self._on_paused = on_paused
        self._on_detached = on_detached

    def list_tabs(self) -> List[Dict[str, Any]]:
        """列出所有页面类型的 target"""
        tabs = []
        for target in self.browser.targets():
            if target.type != PAGE_TARGET:
                continue
            tab_id = target._targetId
            tabs.append({
                'tab_id': tab_id,
                'url': target.url,
                'attached': tab_id in self._sessions
            })
        return tabs

    def _find_target(self, tab_id: str):
        for target in self.browser.targets():
            if target.type == PAGE_TARGET and target._targetId == tab_id:
                return target
        return None

    def _require_session(self, tab_id: str):
        session = self._sessions.get(tab_id)
        if session is None:
            raise TransportError(f'Debugger is not attached to tab {tab_id}', tab_id)
        return session

    async def _send(self, tab_id: str, method: str, params: Optional[dict] = None) -> dict:
        """向标签页会话发送CDP命令

        Raises:
            TransportError: 未附加或命令执行失败
        """
        session = self._require_session(tab_id)
        try:
            return await session.send(method, params or {})
        except PyppeteerError as e:
            raise TransportError(f'{method} failed for tab {tab_id}: {e}', tab_id) from e

    async def attach(self, tab_id: str) -> None:
        if tab_id in self._sessions:
            return
        target = self._find_target(tab_id)
        if target is None:
            raise TransportError(f'Tab not found: {tab_id}', tab_id)
        try:
            session = await target.createCDPSession()
        except PyppeteerError as e:
            raise TransportError(f'Failed to attach to tab {tab_id}: {e}', tab_id) from e

        session.on('Fetch.requestPaused', lambda params: self._handle_request_paused(tab_id, params))
        session.on('Inspector.detached', lambda params: self._handle_detached(tab_id, params.get('reason')))
        session.on('Inspector.targetCrashed', lambda params: self._handle_detached(tab_id, 'target_crashed'))
        self._sessions[tab_id] = session

        try:
            await session.send('Inspector.enable')
        except PyppeteerError as e:
            logger.debug(f'Inspector.enable failed for tab {tab_id}: {e}')

    async def detach(self, tab_id: str) -> None:
        session = self._sessions.pop(tab_id, None)
        if session is None:
            return
        session.remove_all_listeners()
        try:
            await session.detach()
        except PyppeteerError as e:
            raise TransportError(f'Failed to detach from tab {tab_id}: {e}', tab_id) from e

    async def set_subscription(self, tab_id: str, patterns: List[Dict[str, str]]) -> None:
        if patterns:
            await self._send(tab_id, 'Fetch.enable', {'patterns': patterns})
        else:
            await self._send(tab_id, 'Fetch.disable')

    async def get_body(self, tab_id: str, request_id: str) -> Tuple[str, bool]:
        result = await self._send(tab_id, 'Fetch.getResponseBody', {'requestId': request_id})
        return result.get('body', ''), bool(result.get('base64Encoded'))

    async def fulfill(self, tab_id: str, request_id: str, status: int,
                      headers: List[Dict[str, str]], body: str) -> None:
        await self._send(tab_id, 'Fetch.fulfillRequest', {
            'requestId': request_id,
            'responseCode': status,
            'responseHeaders': headers,
            'body': body
        })

    async def resume(self, tab_id: str, request_id: str, url: Optional[str] = None) -> None:
        params = {'requestId': request_id}
        if url:
            params['url'] = url
        await self._send(tab_id, 'Fetch.continueRequest', params)

    def _handle_request_paused(self, tab_id: str, params: dict) -> None:
        if self._on_paused is None or tab_id not in self._sessions:
            return
        exchange = PausedExchange.from_cdp_event(tab_id, params)
        task = asyncio.ensure_future(self._on_paused(exchange))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f'Paused request handler failed: {task.exception()}')

    def _handle_detached(self, tab_id: str, reason: Optional[str]) -> None:
        session = self._sessions.pop(tab_id, None)
        if session is None:
            return
        session.remove_all_listeners()
        logger.info(f'Debugger detached from tab {tab_id}, reason: {reason}')
        if self._on_detached is not None:
            self._on_detached(tab_id, reason)

    def _handle_target_destroyed(self, target) -> None:
        tab_id = getattr(target, '_targetId', None)
        if tab_id in self._sessions:
            self._handle_detached(tab_id, 'target_closed')

    def _handle_browser_disconnected(self, *args) -> None:
        for tab_id in list(self._sessions):
            self._handle_detached(tab_id, 'browser_disconnected')

    async def wait_for_tasks(self) -> None:
        """等待所有进行中的事件处理任务完成"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """关闭连接：由本客户端启动的浏览器直接关闭，否则仅断开"""
        await self.wait_for_tasks()
        for tab_id in list(self._sessions):
            try:
                await self.detach(tab_id)
            except TransportError as e:
                logger.debug(f'Detach on close failed: {e}')
        if self.launched:
            await self.browser.close()
        else:
            await self.browser.disconnect()

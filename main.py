import sys
import asyncio
import logging

from backend.config import config
from mini_modifier.cdp.cdp_client import CDPClient
from mini_modifier.intercept import InterceptEngine, parse_command, CommandError

# 命令行入口：连接到已开启远程调试端口的浏览器（或自行启动一个），
# 选择标签页后启用响应修改或请求重定向，Ctrl+C 结束时强制断开。

logger = logging.getLogger(__name__)


def _choose_tab(tabs):
    for index, tab in enumerate(tabs):
        print(f"[{index}] {tab['url']}")
    choice = input("请选择标签页序号(默认0): ") or "0"
    return tabs[int(choice)]['tab_id']


def _build_payload(tab_id):
    """根据用户输入构造命令"""
    feature = input("请选择功能(modify/redirect)，默认为modify: ") or "modify"
    if feature == "redirect":
        form = config.get_form_data('redirect')
        return {
            'action': 'enableRedirect',
            'tab_id': tab_id,
            'source_url': input(f"源URL [{form['source_url']}]: ") or form['source_url'],
            'target_url': input(f"目标URL [{form['target_url']}]: ") or form['target_url'],
            'method': input(f"HTTP方法(留空匹配任意) [{form['method']}]: ") or form['method'],
        }

    form = config.get_form_data('modify')
    return {
        'action': 'enableModify',
        'tab_id': tab_id,
        'target_url': input(f"目标URL [{form['url']}]: ") or form['url'],
        'override_data': input(f"新响应 [{form['response']}]: ") or form['response'],
        'mode': input(f"模式(replace/merge) [{form['mode']}]: ") or form['mode'],
        'status_code': input("覆盖状态码(留空保持原状态码): ") or None,
    }


async def main():
    """主函数：连接浏览器、选择标签页并启用拦截，直到用户中断"""
    port = int(input(f"请输入远程调试端口(默认{config.get('browser.debug_port', 9222)}，输入0则启动新浏览器): ")
               or config.get('browser.debug_port', 9222))

    if port == 0:
        client = await CDPClient.launch_browser(start_url=config.get_form_data('modify')['url'])
    else:
        client = await CDPClient.connect_to_existing(port=port)

    engine = InterceptEngine(client)
    try:
        tabs = client.list_tabs()
        if not tabs:
            print("未找到可用的标签页")
            return
        tab_id = _choose_tab(tabs)

        try:
            command = parse_command(_build_payload(tab_id))
        except CommandError as e:
            print(f"命令无效: {e}")
            return

        result = await engine.execute(command)
        if not result.get('success'):
            print(f"启用失败: {result.get('error')}")
            return

        print(f"已启用，当前状态: {engine.registry.get_status(tab_id)}")
        print("按 Ctrl+C 结束拦截")
        while engine.registry.get(tab_id) is not None:
            await asyncio.sleep(1)
        print("调试连接已被外部断开")
    finally:
        await engine.shutdown()
        await client.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=config.get_log_level(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("用户中断了程序执行")
    except Exception as e:
        logger.error(f"执行过程中出现错误: {e}")
        sys.exit(1)

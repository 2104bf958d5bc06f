import pytest

from mini_modifier.intercept import (
    CommandDispatcher,
    CommandError,
    DisableRedirect,
    EnableModify,
    EnableRedirect,
    ForceDetach,
    GetStatus,
    ModifyMode,
    TransportError,
    parse_command
)

URL = 'https://api.example.com/user'


def test_parse_enable_modify_from_popup_payload():
    command = parse_command({
        'action': 'enableModify',
        'tabId': 7,
        'url': URL,
        'overrideData': '  {"modified": true}  ',
        'mode': 'MERGE',
        'statusCode': '404',
        'headers': {'X-Mocked': 1},
    })
    assert command == EnableModify(
        tab_id='7',
        target_url=URL,
        override_data='{"modified": true}',
        mode=ModifyMode.MERGE,
        status_code=404,
        header_overrides={'X-Mocked': '1'}
    )
    assert command.to_rule().is_merge


def test_parse_enable_redirect_normalizes_method():
    command = parse_command({
        'action': 'enable_redirect',
        'tab_id': 'tab-1',
        'source_url': URL,
        'target_url': 'https://staging.example.com/user',
        'method': 'get',
    })
    assert isinstance(command, EnableRedirect)
    assert command.to_rule().method == 'GET'

    any_method = parse_command({
        'action': 'enableRedirect',
        'tabId': 'tab-1',
        'sourceUrl': URL,
        'targetUrl': 'https://staging.example.com/user',
        'method': '',
    })
    assert any_method.to_rule().method is None


def test_parse_simple_commands():
    assert parse_command({'action': 'disableRedirect', 'tabId': 'tab-1'}) == DisableRedirect('tab-1')
    assert parse_command({'action': 'force_detach', 'tab_id': 'tab-1'}) == ForceDetach('tab-1')
    assert parse_command({'action': 'getStatus', 'tab_id': 'tab-1'}) == GetStatus('tab-1')


@pytest.mark.parametrize('payload', [
    None,
    {'action': 'explode', 'tab_id': 'tab-1'},
    {'action': 'getStatus'},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL, 'override_data': '   '},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'override_data': '{}'},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL, 'override_data': '{}', 'mode': 'patch'},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL, 'override_data': '{}',
     'status_code': 'abc'},
    {'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL, 'override_data': '{}',
     'headers': ['X-A']},
    {'action': 'enableRedirect', 'tab_id': 'tab-1', 'source_url': URL},
    {'action': 'enableRedirect', 'tab_id': 'tab-1', 'source_url': URL, 'target_url': URL, 'method': 5},
])
def test_parse_rejects_invalid_payloads(payload):
    with pytest.raises(CommandError):
        parse_command(payload)


def test_command_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_command({'action': 'explode', 'tab_id': 'tab-1'})


@pytest.mark.asyncio
async def test_dispatch_enable_and_status(engine):
    result = await engine.execute_payload({
        'action': 'enableModify', 'tab_id': 'tab-1', 'target_url': URL, 'override_data': '{}'
    })
    assert result == {'success': True}

    status = await engine.execute(GetStatus('tab-1'))
    assert status == {'modify_active': True, 'redirect_active': False, 'target_url': URL}


@pytest.mark.asyncio
async def test_dispatch_reports_transport_failure(engine, transport):
    transport.fail['attach'] = TransportError('Cannot attach to this target', 'tab-1')

    result = await engine.execute(EnableModify('tab-1', URL, '{}'))

    assert result == {'success': False, 'error': 'Cannot attach to this target'}


@pytest.mark.asyncio
async def test_dispatch_rejects_unknown_command_type(registry):
    dispatcher = CommandDispatcher(registry)
    with pytest.raises(TypeError):
        await dispatcher.dispatch(object())


@pytest.mark.asyncio
async def test_shutdown_detaches_every_tab(engine, transport):
    await engine.execute(EnableModify('tab-1', URL, '{}'))
    await engine.execute(EnableModify('tab-2', URL, '{}'))

    await engine.shutdown()

    assert engine.registry.tab_ids() == []
    assert transport.attached == set()

import pytest

from mini_modifier.intercept import ModifyMode, ModifyRule, Outcome, TransportError
from mini_modifier.intercept.codec import JSON_CONTENT_TYPE
from mini_modifier.intercept.response_modifier import (
    ResponseModifier,
    build_modified_body,
    resolve_status_code
)
from tests.fakes import decode_body, request_exchange, response_exchange

URL = 'https://api.example.com/user'


@pytest.fixture
def modifier(transport):
    return ResponseModifier(transport)


def _fulfilled(transport):
    calls = transport.calls_named('fulfill')
    assert len(calls) == 1
    _, tab_id, request_id, status, headers, body = calls[0]
    return status, headers, decode_body(body)


def test_resolve_status_code():
    assert resolve_status_code(404, 200) == 404
    assert resolve_status_code(999, 201) == 201
    assert resolve_status_code(99, 201) == 201
    assert resolve_status_code(None, 304) == 304
    assert resolve_status_code(True, 201) == 201
    assert resolve_status_code(None, None) == 200


def test_merge_is_shallow_and_idempotent():
    rule = ModifyRule(URL, '{"a": 1}', mode=ModifyMode.MERGE)
    once = build_modified_body('{"a": 0, "b": {"c": 2}}', rule)
    assert once == '{"a":1,"b":{"c":2}}'
    assert build_modified_body(once, rule) == once


def test_merge_with_empty_override_keeps_original():
    rule = ModifyRule(URL, '{}', mode=ModifyMode.MERGE)
    assert build_modified_body('{"a": 0}', rule) == '{"a":0}'


def test_merge_falls_back_to_replace_for_non_object_original():
    rule = ModifyRule(URL, '{"a": 1}', mode=ModifyMode.MERGE)
    assert build_modified_body('not json', rule) == '{"a": 1}'
    assert build_modified_body('[1, 2]', rule) == '{"a": 1}'


def test_merge_with_non_object_override_gives_up():
    rule = ModifyRule(URL, '[1, 2]', mode=ModifyMode.MERGE)
    assert build_modified_body('{"a": 0}', rule) is None


def test_replace_serializes_structured_override():
    rule = ModifyRule(URL, {'name': '测试'})
    assert build_modified_body('{"a": 0}', rule) == '{"name":"测试"}'


@pytest.mark.asyncio
async def test_replace_fulfills_with_json_content_type(modifier, transport):
    transport.set_json_body('req-1', {'name': 'original'})
    rule = ModifyRule(URL, '{"modified": true}')

    outcome = await modifier.handle(response_exchange(URL), rule)

    assert outcome == Outcome.FULFILLED
    status, headers, body = _fulfilled(transport)
    assert status == 200
    assert {'name': 'content-type', 'value': JSON_CONTENT_TYPE} in headers
    assert body == {'modified': True}
    assert transport.calls_named('resume') == []


@pytest.mark.asyncio
async def test_merge_fulfills_merged_body(modifier, transport):
    transport.set_json_body('req-1', {'a': 0, 'b': 2}, encoded=False)
    rule = ModifyRule(URL, '{"a": 1}', mode=ModifyMode.MERGE)

    assert await modifier.handle(response_exchange(URL), rule) == Outcome.FULFILLED
    _, _, body = _fulfilled(transport)
    assert body == {'a': 1, 'b': 2}


@pytest.mark.asyncio
async def test_status_override_in_range_is_used(modifier, transport):
    transport.set_json_body('req-1', {})
    rule = ModifyRule(URL, '{}', status_code=404)

    await modifier.handle(response_exchange(URL, status=200), rule)
    status, _, _ = _fulfilled(transport)
    assert status == 404


@pytest.mark.asyncio
async def test_status_override_out_of_range_keeps_original(modifier, transport):
    transport.set_json_body('req-1', {})
    rule = ModifyRule(URL, '{}', status_code=999)

    await modifier.handle(response_exchange(URL, status=201), rule)
    status, _, _ = _fulfilled(transport)
    assert status == 201


@pytest.mark.asyncio
async def test_header_overrides_are_applied(modifier, transport):
    transport.set_json_body('req-1', {})
    rule = ModifyRule(URL, '{}', header_overrides={'X-Mocked': '1'})

    await modifier.handle(response_exchange(URL), rule)
    _, headers, _ = _fulfilled(transport)
    assert {'name': 'X-Mocked', 'value': '1'} in headers


@pytest.mark.asyncio
async def test_other_urls_are_resumed(modifier, transport):
    rule = ModifyRule(URL, '{}')

    outcome = await modifier.handle(response_exchange(URL + '?page=2'), rule)

    assert outcome == Outcome.RESUMED
    assert transport.calls == [('resume', 'tab-1', 'req-1', None)]


@pytest.mark.asyncio
async def test_request_stage_is_resumed(modifier, transport):
    outcome = await modifier.handle(request_exchange(URL), ModifyRule(URL, '{}'))
    assert outcome == Outcome.RESUMED
    assert transport.calls_named('get_body') == []


@pytest.mark.asyncio
async def test_invalid_override_is_resumed(modifier, transport):
    transport.set_json_body('req-1', {'a': 0})
    rule = ModifyRule(URL, '{not json')

    assert await modifier.handle(response_exchange(URL), rule) == Outcome.RESUMED
    assert transport.calls_named('fulfill') == []


@pytest.mark.asyncio
async def test_non_object_merge_override_is_resumed(modifier, transport):
    transport.set_json_body('req-1', {'a': 0})
    rule = ModifyRule(URL, '"text"', mode=ModifyMode.MERGE)

    assert await modifier.handle(response_exchange(URL), rule) == Outcome.RESUMED
    assert transport.calls_named('fulfill') == []


@pytest.mark.asyncio
async def test_undecodable_body_is_resumed(modifier, transport):
    transport.bodies['req-1'] = ('%%%not-base64%%%', True)

    outcome = await modifier.handle(response_exchange(URL), ModifyRule(URL, '{}'))

    assert outcome == Outcome.RESUMED
    assert transport.calls_named('fulfill') == []


@pytest.mark.asyncio
async def test_body_fetch_failure_is_resumed(modifier, transport):
    transport.fail['get_body'] = TransportError('No resource with given identifier', 'tab-1')

    outcome = await modifier.handle(response_exchange(URL), ModifyRule(URL, '{}'))

    assert outcome == Outcome.RESUMED
    assert len(transport.calls_named('resume')) == 1


@pytest.mark.asyncio
async def test_fulfill_failure_resumes_once(modifier, transport):
    transport.set_json_body('req-1', {})
    transport.fail['fulfill'] = TransportError('Invalid InterceptionId', 'tab-1')

    outcome = await modifier.handle(response_exchange(URL), ModifyRule(URL, '{}'))

    assert outcome == Outcome.RESUMED
    assert len(transport.calls_named('resume')) == 1


@pytest.mark.asyncio
async def test_failed_resume_is_reported_not_raised(modifier, transport):
    transport.set_json_body('req-1', {})
    transport.fail['fulfill'] = TransportError('fulfill failed', 'tab-1')
    transport.fail['resume'] = TransportError('resume failed', 'tab-1')

    outcome = await modifier.handle(response_exchange(URL), ModifyRule(URL, '{}'))

    assert outcome == Outcome.FAILED

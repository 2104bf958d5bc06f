import base64

import pytest

from mini_modifier.intercept.codec import (
    JSON_CONTENT_TYPE,
    from_wire_text,
    is_valid_json,
    merge_header_list,
    safe_parse_json,
    to_wire_text
)


def test_safe_parse_json_returns_default_on_malformed_input():
    assert safe_parse_json('{"a": 1}') == {'a': 1}
    assert safe_parse_json('{broken') is None
    assert safe_parse_json('{broken', default={}) == {}
    assert safe_parse_json(None, default='x') == 'x'


def test_is_valid_json_accepts_null_and_rejects_garbage():
    assert is_valid_json('null')
    assert is_valid_json('[1, 2]')
    assert not is_valid_json('{')
    assert not is_valid_json('')
    assert not is_valid_json(None)


def test_wire_text_keeps_non_ascii_content():
    text = '{"消息": "你好", "emoji": "☃"}'
    encoded = to_wire_text(text)
    assert base64.b64decode(encoded).decode('utf-8') == text
    assert from_wire_text(encoded, True) == text


def test_from_wire_text_passes_plain_bodies_through():
    assert from_wire_text('{"a":1}', False) == '{"a":1}'
    assert from_wire_text(None, False) == ''


def test_from_wire_text_rejects_invalid_base64():
    with pytest.raises(ValueError):
        from_wire_text('not base64!!', True)


def test_from_wire_text_rejects_non_utf8_bytes():
    with pytest.raises(ValueError):
        from_wire_text(base64.b64encode(b'\xff\xfe\xfd').decode('ascii'), True)


def test_merge_header_list_replaces_content_type_in_place():
    original = [
        {'name': 'Cache-Control', 'value': 'no-cache'},
        {'name': 'Content-Type', 'value': 'text/html'},
        {'name': 'X-Trace', 'value': 'abc'},
    ]
    headers = merge_header_list(original)
    assert headers == [
        {'name': 'Cache-Control', 'value': 'no-cache'},
        {'name': 'content-type', 'value': JSON_CONTENT_TYPE},
        {'name': 'X-Trace', 'value': 'abc'},
    ]
    assert original[1] == {'name': 'Content-Type', 'value': 'text/html'}


def test_merge_header_list_appends_missing_content_type():
    headers = merge_header_list([{'name': 'X-A', 'value': '1'}])
    assert headers[-1] == {'name': 'content-type', 'value': JSON_CONTENT_TYPE}
    assert merge_header_list(None) == [{'name': 'content-type', 'value': JSON_CONTENT_TYPE}]


def test_merge_header_list_keeps_a_single_content_type():
    original = [
        {'name': 'content-type', 'value': 'text/plain'},
        {'name': 'CONTENT-TYPE', 'value': 'text/html'},
    ]
    headers = merge_header_list(original)
    content_types = [h for h in headers if h['name'].lower() == 'content-type']
    assert content_types == [{'name': 'content-type', 'value': JSON_CONTENT_TYPE}]


def test_merge_header_list_applies_overrides():
    original = [
        {'name': 'Content-Type', 'value': 'text/plain'},
        {'name': 'cache-control', 'value': 'max-age=60'},
    ]
    headers = merge_header_list(original, {
        'Cache-Control': 'no-store',
        'X-Mocked': 'yes',
        'Content-Type': 'text/html',
    })
    assert headers == [
        {'name': 'content-type', 'value': JSON_CONTENT_TYPE},
        {'name': 'Cache-Control', 'value': 'no-store'},
        {'name': 'X-Mocked', 'value': 'yes'},
    ]

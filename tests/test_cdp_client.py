import pytest
from pyppeteer.errors import NetworkError

from mini_modifier.cdp.cdp_client import CDPClient
from mini_modifier.intercept import RequestStage, TransportError


class FakeCDPSession:
    def __init__(self):
        self.sent = []
        self.handlers = {}
        self.responses = {}
        self.errors = {}
        self.detached = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def remove_all_listeners(self):
        self.handlers.clear()

    async def send(self, method, params=None):
        self.sent.append((method, params))
        if method in self.errors:
            raise self.errors[method]
        return self.responses.get(method, {})

    async def detach(self):
        self.detached = True


class FakeTarget:
    def __init__(self, target_id, url='https://example.com/', target_type='page'):
        self._targetId = target_id
        self.url = url
        self.type = target_type
        self.session = FakeCDPSession()
        self.sessions_created = 0

    async def createCDPSession(self):
        self.sessions_created += 1
        return self.session


class FakeBrowser:
    def __init__(self, targets):
        self._targets = targets
        self.handlers = {}
        self.closed = False
        self.disconnected = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def targets(self):
        return list(self._targets)

    async def close(self):
        self.closed = True

    async def disconnect(self):
        self.disconnected = True


@pytest.fixture
def page():
    return FakeTarget('tab-1')


@pytest.fixture
def browser(page):
    return FakeBrowser([page, FakeTarget('worker-1', target_type='service_worker')])


@pytest.fixture
def client(browser):
    return CDPClient(browser)


def test_list_tabs_only_reports_pages(client):
    assert client.list_tabs() == [{'tab_id': 'tab-1', 'url': 'https://example.com/', 'attached': False}]


@pytest.mark.asyncio
async def test_attach_creates_one_session(client, page):
    await client.attach('tab-1')
    await client.attach('tab-1')

    assert page.sessions_created == 1
    assert page.session.sent == [('Inspector.enable', None)]
    assert 'Fetch.requestPaused' in page.session.handlers
    assert client.list_tabs()[0]['attached'] is True


@pytest.mark.asyncio
async def test_attach_unknown_tab_fails(client):
    with pytest.raises(TransportError):
        await client.attach('missing')


@pytest.mark.asyncio
async def test_commands_require_attachment(client):
    with pytest.raises(TransportError):
        await client.resume('tab-1', 'req-1')


@pytest.mark.asyncio
async def test_subscription_commands(client, page):
    await client.attach('tab-1')
    patterns = [{'urlPattern': 'https://a.com/*', 'requestStage': 'Request'}]

    await client.set_subscription('tab-1', patterns)
    await client.set_subscription('tab-1', [])

    assert page.session.sent[1:] == [
        ('Fetch.enable', {'patterns': patterns}),
        ('Fetch.disable', {}),
    ]


@pytest.mark.asyncio
async def test_fetch_commands(client, page):
    await client.attach('tab-1')
    page.session.responses['Fetch.getResponseBody'] = {'body': 'e30=', 'base64Encoded': True}

    assert await client.get_body('tab-1', 'req-1') == ('e30=', True)
    await client.fulfill('tab-1', 'req-1', 404, [{'name': 'content-type', 'value': 'x'}], 'e30=')
    await client.resume('tab-1', 'req-2', url='https://b.com/')
    await client.resume('tab-1', 'req-3')

    assert page.session.sent[2:] == [
        ('Fetch.fulfillRequest', {
            'requestId': 'req-1',
            'responseCode': 404,
            'responseHeaders': [{'name': 'content-type', 'value': 'x'}],
            'body': 'e30='
        }),
        ('Fetch.continueRequest', {'requestId': 'req-2', 'url': 'https://b.com/'}),
        ('Fetch.continueRequest', {'requestId': 'req-3'}),
    ]


@pytest.mark.asyncio
async def test_protocol_errors_become_transport_errors(client, page):
    await client.attach('tab-1')
    page.session.errors['Fetch.continueRequest'] = NetworkError('Invalid InterceptionId.')

    with pytest.raises(TransportError) as exc_info:
        await client.resume('tab-1', 'req-1')
    assert exc_info.value.tab_id == 'tab-1'


@pytest.mark.asyncio
async def test_detach_releases_session(client, page):
    await client.attach('tab-1')
    await client.detach('tab-1')
    await client.detach('tab-1')

    assert page.session.detached
    assert page.session.handlers == {}
    assert client.list_tabs()[0]['attached'] is False


@pytest.mark.asyncio
async def test_request_paused_is_forwarded(client, page):
    received = []

    async def on_paused(exchange):
        received.append(exchange)

    client.set_event_handlers(on_paused, lambda tab_id, reason: None)
    await client.attach('tab-1')

    page.session.handlers['Fetch.requestPaused']({
        'requestId': 'interception-1',
        'request': {'url': 'https://a.com/api', 'method': 'GET'},
        'responseStatusCode': 200,
        'responseHeaders': [],
    })
    await client.wait_for_tasks()

    assert len(received) == 1
    assert received[0].tab_id == 'tab-1'
    assert received[0].stage == RequestStage.RESPONSE


@pytest.mark.asyncio
async def test_external_detach_is_reported(client, page):
    detached = []
    client.set_event_handlers(None, lambda tab_id, reason: detached.append((tab_id, reason)))
    await client.attach('tab-1')

    page.session.handlers['Inspector.detached']({'reason': 'replaced_with_devtools'})

    assert detached == [('tab-1', 'replaced_with_devtools')]
    assert client.list_tabs()[0]['attached'] is False


@pytest.mark.asyncio
async def test_closed_target_is_reported(client, browser, page):
    detached = []
    client.set_event_handlers(None, lambda tab_id, reason: detached.append((tab_id, reason)))
    await client.attach('tab-1')

    browser.handlers['targetdestroyed'](page)

    assert detached == [('tab-1', 'target_closed')]


@pytest.mark.asyncio
async def test_close_disconnects_from_existing_browser(client, browser, page):
    await client.attach('tab-1')

    await client.close()

    assert page.session.detached
    assert browser.disconnected
    assert not browser.closed


@pytest.mark.asyncio
async def test_close_shuts_down_launched_browser(browser):
    client = CDPClient(browser, launched=True)
    await client.close()
    assert browser.closed

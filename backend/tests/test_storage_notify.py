import aiosmtplib
import pytest
import requests
from fieldledger.config.settings import load_settings
from fieldledger.errors import Internal
from fieldledger.services import notify, storage


class FakeResponse:
    def __init__(self, status=200):
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f'{self.status} error')


def test_delete_file_posts_to_store(app_ctx, monkeypatch):
    calls = []
    monkeypatch.setitem(app_ctx.config, 'FILE_STORE_DELETE_URL', 'https://files.example.com/delete')
    monkeypatch.setattr(storage.requests, 'post', lambda url, json, timeout: calls.append((url, json)) or FakeResponse())
    assert storage.delete_file('https://files.example.com/a.jpg') is True
    assert calls == [('https://files.example.com/delete', {'url': 'https://files.example.com/a.jpg'})]


def test_delete_file_failures_are_swallowed(app_ctx, monkeypatch):
    monkeypatch.setitem(app_ctx.config, 'FILE_STORE_DELETE_URL', 'https://files.example.com/delete')
    monkeypatch.setattr(storage.requests, 'post', lambda *a, **k: FakeResponse(502))
    assert storage.delete_file('https://files.example.com/a.jpg') is False

    def unreachable(*a, **k):
        raise requests.ConnectionError('down')
    monkeypatch.setattr(storage.requests, 'post', unreachable)
    assert storage.delete_file('https://files.example.com/a.jpg') is False


def test_delete_file_noops(app_ctx, monkeypatch):
    def boom(*a, **k):
        raise AssertionError('should not be called')
    monkeypatch.setattr(storage.requests, 'post', boom)
    assert storage.delete_file(None) is False
    # no store configured in tests
    assert storage.delete_file('https://files.example.com/a.jpg') is False
    monkeypatch.setitem(app_ctx.config, 'FILE_STORE_DELETE_URL', 'https://files.example.com/delete')
    storage.replace_file('https://files.example.com/same.jpg', 'https://files.example.com/same.jpg')
    storage.replace_file(None, 'https://files.example.com/new.jpg')


def test_suppressed_mail_goes_to_outbox(app_ctx, outbox):
    msg = notify.send_otp_email('field@example.com', '042137', 'Kiran')
    assert list(outbox) == [msg]
    assert msg['To'] == 'field@example.com'
    assert msg.get_content_type() == 'multipart/alternative'
    body = notify.plain_body(msg)
    assert 'Your password reset code is 042137' in body
    assert 'expires in 10 minutes' in body


def test_reset_email_links_token_in_both_parts(app_ctx, outbox):
    msg = notify.send_password_reset_email('admin@example.com', 'abc123', 'Admin <Root>')
    link = f"{app_ctx.config['ADMIN_RESET_URL']}?token=abc123"
    assert link in notify.plain_body(msg)
    html = [p for p in msg.walk() if p.get_content_type() == 'text/html'][0]
    rendered = html.get_payload(decode=True).decode()
    assert f'href="{link}"' in rendered
    # names are escaped in the HTML part
    assert 'Admin &lt;Root&gt;' in rendered


def test_outbox_keeps_only_recent_messages(app_ctx, outbox):
    for i in range(notify.OUTBOX_LIMIT + 5):
        notify.send_email(f'user{i}@example.com', 'Hi', 'Body')
    assert len(outbox) == notify.OUTBOX_LIMIT
    assert outbox[0]['To'] == 'user5@example.com'
    assert outbox[-1]['To'] == f'user{notify.OUTBOX_LIMIT + 4}@example.com'


def test_mail_is_delivered_unless_suppression_is_configured(monkeypatch):
    monkeypatch.delenv('MAIL_SUPPRESS_SEND', raising=False)
    assert load_settings()['MAIL_SUPPRESS_SEND'] is False
    monkeypatch.setenv('MAIL_SUPPRESS_SEND', 'true')
    assert load_settings()['MAIL_SUPPRESS_SEND'] is True


def test_smtp_failure_raises_internal(app_ctx, monkeypatch, outbox):
    monkeypatch.setitem(app_ctx.config, 'MAIL_SUPPRESS_SEND', False)

    async def unreachable(message, **kwargs):
        raise aiosmtplib.SMTPConnectError('try later')

    monkeypatch.setattr(notify.aiosmtplib, 'send', unreachable)
    with pytest.raises(Internal):
        notify.send_password_reset_email('admin@example.com', 'abc', 'Admin')
    assert len(outbox) == 0


def test_smtp_delivery(app_ctx, monkeypatch):
    monkeypatch.setitem(app_ctx.config, 'MAIL_SUPPRESS_SEND', False)
    monkeypatch.setitem(app_ctx.config, 'MAIL_USE_TLS', True)
    monkeypatch.setitem(app_ctx.config, 'MAIL_USERNAME', 'mailer')
    monkeypatch.setitem(app_ctx.config, 'MAIL_PASSWORD', 'secret')
    sent = []

    async def recording(message, **kwargs):
        sent.append((message['To'], kwargs))

    monkeypatch.setattr(notify.aiosmtplib, 'send', recording)
    notify.send_email('ops@example.com', 'Hello', 'Body')
    assert len(sent) == 1
    to, kwargs = sent[0]
    assert to == 'ops@example.com'
    assert kwargs['hostname'] == app_ctx.config['MAIL_SERVER']
    assert kwargs['start_tls'] is True
    assert (kwargs['username'], kwargs['password']) == ('mailer', 'secret')

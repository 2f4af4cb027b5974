import logging
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import requests

from fakes import FakeSession, dispatch_records, make_content, make_dispatcher, set_target
from github_dispatch import register_handlers


def test_one_request_per_record_in_input_order(monkeypatch, tmp_path):
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session, executor=ThreadPoolExecutor(max_workers=1))

    d.dispatch([make_content(i) for i in range(1, 4)], 'content_published')
    d.close()
    d.executor.shutdown()

    assert [c['body']['client_payload']['id'] for c in session.calls] == [1, 2, 3]
    first = session.calls[0]
    assert first['url'] == 'https://api.github.com/repos/acme/site/dispatches'
    assert first['body'] == {
        'event_type': 'content_published',
        'client_payload': {
            'id': 1,
            'name': 'Page 1',
            'contentType': 'article',
            'updateDate': '2024-01-01T12:00:01',
        },
    }
    assert first['headers']['Accept'] == 'application/vnd.github.v3+json'
    assert first['headers']['Authorization'] == 'token secret'
    assert first['headers']['User-Agent'].startswith('github-dispatch/')
    assert first['timeout'] == 10.0


def test_success_logs_one_info_per_record(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session)

    d.dispatch([make_content(1), make_content(2)], 'content_unpublished')
    d.close()

    infos = dispatch_records(caplog, logging.INFO)
    assert len(infos) == 2
    assert sorted(r.content_id for r in infos) == [1, 2]
    assert all(r.event_type == 'content_unpublished' for r in infos)
    assert any('Page 2 (2)' in r.getMessage() for r in infos)
    assert dispatch_records(caplog, logging.ERROR) == []


def test_empty_batch_sends_nothing_and_logs_nothing(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.DEBUG)
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session)

    d.dispatch([], 'content_published')
    d.close()

    assert session.calls == []
    assert dispatch_records(caplog) == []


def test_transport_failure_is_isolated_to_its_record(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    set_target(monkeypatch)
    session = FakeSession(
        errors={2: requests.ConnectionError('connection refused')},
        statuses={4: 422},
    )
    d = make_dispatcher(tmp_path, session)

    d.dispatch([make_content(i) for i in range(1, 6)], 'content_published')
    d.close()

    assert sorted(c['body']['client_payload']['id'] for c in session.calls) == [1, 2, 3, 4, 5]
    errors = dispatch_records(caplog, logging.ERROR)
    assert sorted(r.content_id for r in errors) == [2, 4]
    by_id = {r.content_id: r for r in errors}
    assert by_id[2].content_name == 'Page 2'
    assert 'connection refused' in by_id[2].getMessage()
    assert isinstance(by_id[4].exc_info[1], requests.HTTPError)
    infos = dispatch_records(caplog, logging.INFO)
    assert sorted(r.content_id for r in infos) == [1, 3, 5]


def test_setup_failure_is_logged_and_loop_continues(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session)
    broken = SimpleNamespace(id=7, name='Broken')  # no content_type

    d.dispatch([make_content(1), broken, make_content(3)], 'content_published')
    d.close()

    assert sorted(c['body']['client_payload']['id'] for c in session.calls) == [1, 3]
    errors = dispatch_records(caplog, logging.ERROR)
    assert len(errors) == 1
    assert errors[0].content_id == 7
    assert 'Exception while dispatching' in errors[0].getMessage()


def test_dispatch_after_close_logs_per_record(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session)
    d.close()

    d.dispatch([make_content(1), make_content(2)], 'content_published')

    assert session.calls == []
    assert len(dispatch_records(caplog, logging.ERROR)) == 2


def test_notification_handlers_and_registration(monkeypatch, tmp_path):
    set_target(monkeypatch)
    session = FakeSession()
    d = make_dispatcher(tmp_path, session, executor=ThreadPoolExecutor(max_workers=1))
    subscriptions = {}
    register_handlers(d, lambda name, cb: subscriptions.__setitem__(name, cb))

    subscriptions['content_published'](SimpleNamespace(published_entities=[make_content(1)]))
    subscriptions['content_unpublished'](SimpleNamespace(unpublished_entities=[make_content(2)]))
    d.close()
    d.executor.shutdown()

    assert [c['body']['event_type'] for c in session.calls] == ['content_published', 'content_unpublished']


def test_redirect_status_is_logged_as_failure(monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    set_target(monkeypatch)
    session = FakeSession(statuses={1: 302, 2: 200})
    d = make_dispatcher(tmp_path, session)

    d.dispatch([make_content(1), make_content(2)], 'content_published')
    d.close()

    errors = dispatch_records(caplog, logging.ERROR)
    assert [r.content_id for r in errors] == [1]
    assert isinstance(errors[0].exc_info[1], requests.HTTPError)
    assert errors[0].exc_info[1].response.status_code == 302
    assert [r.content_id for r in dispatch_records(caplog, logging.INFO)] == [2]

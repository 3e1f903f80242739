import pytest

from mercurehub.local import LocalTransport, deprecated_new_local_transport
from mercurehub.localsubscriber import LocalSubscriber
from mercurehub.topicselector import TopicSelectorStore
from mercurehub.transport import (
    EARLIEST_LAST_EVENT_ID,
    ClosedTransportError,
    Transport,
    new_transport,
)
from mercurehub.update import Update


@pytest.fixture
def transport():
    t = LocalTransport()
    yield t
    t.close()


def test_do_not_dispatch_until_listen(transport):
    assert isinstance(transport, Transport)
    u = Update(topics=["http://example.com/books/1"])
    transport.dispatch(u)

    s = LocalSubscriber("", None, TopicSelectorStore())
    s.set_topics(u.topics, None)
    transport.add_subscriber(s)

    s.disconnect()
    assert list(s) == []


def test_dispatch(transport):
    s = LocalSubscriber("", None, TopicSelectorStore())
    s.set_topics(["http://example.com/foo"], None)
    transport.add_subscriber(s)

    u = Update(topics=s.subscribed_topics)
    transport.dispatch(u)
    assert s.receive(timeout=1) is u


def test_closed(transport):
    tss = TopicSelectorStore()
    s = LocalSubscriber("", None, tss)
    transport.add_subscriber(s)
    transport.close()

    with pytest.raises(ClosedTransportError):
        transport.add_subscriber(LocalSubscriber("", None, tss))
    with pytest.raises(ClosedTransportError):
        transport.dispatch(Update())
    assert s.receive(timeout=1) is None


def test_live_clean_disconnected_subscribers(transport):
    tss = TopicSelectorStore()
    s1 = LocalSubscriber("", None, tss)
    transport.add_subscriber(s1)
    s2 = LocalSubscriber("", None, tss)
    transport.add_subscriber(s2)
    assert len(transport.subscribers) == 2

    s1.disconnect()
    transport.remove_subscriber(s1)
    assert len(transport.subscribers) == 1

    s2.disconnect()
    transport.remove_subscriber(s2)
    assert len(transport.subscribers) == 0


def test_live_reading(transport):
    s = LocalSubscriber("", None, TopicSelectorStore())
    s.set_topics(["https://example.com"], None)
    transport.add_subscriber(s)

    u = Update(topics=s.subscribed_topics)
    transport.dispatch(u)
    assert s.receive(timeout=1) == u


def test_get_subscribers(transport):
    tss = TopicSelectorStore()
    s1 = LocalSubscriber("", None, tss)
    transport.add_subscriber(s1)
    s2 = LocalSubscriber("", None, tss)
    transport.add_subscriber(s2)

    last_event_id, subscribers = transport.get_subscribers()
    assert last_event_id == EARLIEST_LAST_EVENT_ID
    assert len(subscribers) == 2
    assert s1 in subscribers
    assert s2 in subscribers


def test_last_event_id_follows_dispatch(transport):
    transport.dispatch(Update(topics=["foo"], id="abc"))
    last_event_id, _ = transport.get_subscribers()
    assert last_event_id == "abc"


def test_dispatch_assigns_uuid(transport):
    u = Update(topics=["foo"])
    transport.dispatch(u)
    assert u.id.startswith("urn:uuid:")


def test_subscriber_with_last_event_id_gets_earliest(transport):
    s = LocalSubscriber("some-id", None, TopicSelectorStore())
    transport.add_subscriber(s)
    assert s.response_last_event_id(timeout=1) == EARLIEST_LAST_EVENT_ID


def test_close_twice_disconnects_once(transport):
    s = LocalSubscriber("", None, TopicSelectorStore())
    transport.add_subscriber(s)
    transport.close()
    transport.close()
    assert s.disconnected is True


def test_factory_registered():
    t = new_transport("local://", None)
    try:
        assert t.get_subscribers() == (EARLIEST_LAST_EVENT_ID, [])
        t.dispatch(Update(topics=["foo"], id="from-factory"))
        last_event_id, _ = t.get_subscribers()
        assert last_event_id == "from-factory"
    finally:
        t.close()


def test_deprecated_constructor():
    t = deprecated_new_local_transport(None, None)
    assert t.get_subscribers() == (EARLIEST_LAST_EVENT_ID, [])
# mercurehub

The building blocks of a Mercure hub: a library that routes updates to
subscribers according to their topics and topic selectors.

## What it provides

- `mercurehub.update`: `Update` holds the topics, a `private` flag, a `debug`
  flag and the server-sent event fields `id`, `type`, `data` and `retry`.
  `assign_uuid` gives an update a `urn:uuid:` id when it has none.
  `Update.to_json` and `Update.from_json` convert an update to and from JSON,
  and `Update.log_fields` returns the fields used in logs. `data` appears
  there only when `debug` is set.
- `mercurehub.topicselector`: `TopicSelectorStore.match(topic, selector)`
  accepts an exact match, the reserved `*` selector, or a URI template such
  as `https://example.com/books/{id}`. `template_regexp` compiles a URI
  template into a regular expression and raises `ValueError` on a malformed
  template. `new_topic_selector_store_lru(max_entries_per_shard, shard_count)`
  creates a store that caches compiled templates and match results in a
  `ShardedLRUCache`. A size of `0` means no cache. A shard count of `0` means
  256 shards.
- `mercurehub.subscriber`: `Subscriber` holds the subscribed topic selectors
  and the private topic selectors that are allowed. `match_topics` and
  `match` decide whether an update may be delivered. `get_subscriptions`
  returns `Subscription` objects. `Subscription.to_dict` gives their JSON-LD
  form.
- `mercurehub.localsubscriber`: `LocalSubscriber` is a subscriber of the
  current process. It buffers up to 1000 updates, and `receive(timeout)`
  takes them in order; iterating over the subscriber does the same. Live
  updates are held back until `ready()` is called, so that updates from the
  history come first. A subscriber whose buffer is full is disconnected.
- `mercurehub.subscriberlist`: `SubscriberList` finds the subscribers that an
  update should reach, with a cache of results per topic set.
  `encode`/`decode` build and read the cache keys. `get_subscribers` lists
  all subscribers.
- Transports (`mercurehub.transport`): the abstract `Transport` defines
  `dispatch`, `add_subscriber`, `remove_subscriber` and `close`. A closed
  transport raises `ClosedTransportError`.
  `register_transport_factory(scheme, factory)` and `new_transport(url, logger)`
  build transports from a DSN. An unknown scheme raises `TransportError`.
  - `mercurehub.local.LocalTransport` broadcasts updates inside one process.
    Importing `mercurehub.local` registers it under the `local` scheme.
  - `mercurehub.redis_transport.RedisTransport` shares updates between hubs
    through Redis publish/subscribe and keeps the last event id in Redis.
    `new_redis_transport(logger, address, username, password,
    subscribers_size, dispatcher_pool_size, redis_channel)` connects to a
    Redis server and raises `ConnectionError` when it cannot.
- `mercurehub.metrics`: `PrometheusMetrics` counts connected subscribers,
  handled subscribers and published updates with `Gauge` and `Counter`.
  `render()` returns them in the Prometheus text format. `NopMetrics` records
  nothing.

## Installation

```
pip install mercurehub
```

## Example

```python
from mercurehub.local import LocalTransport
from mercurehub.localsubscriber import LocalSubscriber
from mercurehub.topicselector import TopicSelectorStore
from mercurehub.update import Update

transport = LocalTransport()

subscriber = LocalSubscriber("", None, TopicSelectorStore())
subscriber.set_topics(["https://example.com/books/{id}"], None)
transport.add_subscriber(subscriber)

update = Update(topics=["https://example.com/books/1"], data="Hello!")
transport.dispatch(update)

received = subscriber.receive(timeout=1)
print(received.id, received.data)

transport.close()
```

Private updates (`Update(..., private=True)`) reach only subscribers whose
allowed private topic selectors match one of the update's topics.

## What it does not do

This is a library, not a running hub. It has no HTTP server and no publish
or subscribe endpoints. It does not check JWTs and does not format
server-sent events. It has no command-line program. It has no transport
that stores the history of updates: `LocalTransport` only delivers live
updates, and `RedisTransport` keeps only the last event id.

## Tests

```
pip install -e ".[test]"
pytest
```
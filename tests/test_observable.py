"""
Tests for the Observable and Subscription classes in lnrpc.observable.
"""

import pytest

from lnrpc.observable import Observable, SequenceState, Subscription


class RecordingObserver:
    def __init__(self):
        self.events = []

    def on_next(self, value):
        self.events.append(("next", value))

    def on_error(self, error):
        self.events.append(("error", error))

    def on_completed(self):
        self.events.append(("completed", None))


def test_observable_does_not_start_before_subscribe() -> None:
    """Test that the producer only runs on subscribe."""
    started = []
    sequence = Observable(lambda subscription: started.append(subscription))

    assert started == []
    assert sequence.state is SequenceState.created

    subscription = sequence.subscribe()

    assert started == [subscription]
    assert sequence.state is SequenceState.active


def test_observable_accepts_observer_objects() -> None:
    """Test that an observer object receives next and completion."""

    def produce(subscription: Subscription) -> None:
        subscription.next(1)
        subscription.next(2)
        subscription.complete()

    observer = RecordingObserver()
    Observable(produce).subscribe(observer)

    assert observer.events == [("next", 1), ("next", 2), ("completed", None)]


def test_observable_producer_raise_becomes_error() -> None:
    """Test that a producer raising synchronously produces a single error notification."""

    def produce(subscription: Subscription) -> None:
        raise OSError("socket closed")

    observer = RecordingObserver()
    sequence = Observable(produce)
    sequence.subscribe(observer)

    assert len(observer.events) == 1
    kind, error = observer.events[0]
    assert kind == "error"
    assert isinstance(error, OSError)
    assert sequence.state is SequenceState.errored


def test_observable_terminal_states_are_final() -> None:
    """Test that notifications after completion or error are ignored."""
    subscriptions = []
    observer = RecordingObserver()
    Observable(subscriptions.append).subscribe(observer)
    subscription = subscriptions[0]

    subscription.complete()
    subscription.next("late")
    subscription.error(RuntimeError("late"))
    subscription.complete()

    assert observer.events == [("completed", None)]
    assert subscription.state is SequenceState.completed
    assert subscription.closed


def test_observable_single_subscription() -> None:
    """Test that a sequence cannot be subscribed twice."""
    sequence = Observable(lambda subscription: None)
    sequence.subscribe()

    with pytest.raises(RuntimeError, match="single subscription"):
        sequence.subscribe()


def test_unsubscribe_stops_delivery_but_not_the_producer() -> None:
    """Test that unsubscribing silences the observer while the producer keeps pushing."""
    subscriptions = []
    observer = RecordingObserver()
    handle = Observable(subscriptions.append).subscribe(observer)
    producer_side = subscriptions[0]

    producer_side.next("first")
    handle.unsubscribe()
    producer_side.next("second")
    producer_side.complete()

    assert observer.events == [("next", "first")]
    assert producer_side.state is SequenceState.completed


def test_missing_error_handler_does_not_raise() -> None:
    """Test that an error notification without a handler is logged instead of raised."""

    def produce(subscription: Subscription) -> None:
        subscription.error(ValueError("unobserved"))

    sequence = Observable(produce)
    sequence.subscribe(on_next=lambda value: None)

    assert sequence.state is SequenceState.errored


@pytest.mark.asyncio
async def test_observable_async_iteration() -> None:
    """Test that async iteration yields every next notification and stops on completion."""

    def produce(subscription: Subscription) -> None:
        for value in ("a", "b", "c"):
            subscription.next(value)
        subscription.complete()

    assert [value async for value in Observable(produce)] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_observable_async_iteration_raises_error() -> None:
    """Test that async iteration raises the error notification after earlier values."""

    def produce(subscription: Subscription) -> None:
        subscription.next("a")
        subscription.error(ConnectionResetError("stream reset"))

    received = []
    with pytest.raises(ConnectionResetError, match="stream reset"):
        async for value in Observable(produce):
            received.append(value)

    assert received == ["a"]

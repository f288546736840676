from dataclasses import dataclass

import pytest

from shared.application.message_bus import MessageBus, message_bus
from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import DomainEvent


@dataclass
class SomethingHappened(DomainEvent):
    what: str


@dataclass
class UowMarked(DomainEvent):
    marker: str


def test_event_serializes_with_payload():
    event = SomethingHappened("ping", aggregate_id=7)

    data = event.to_dict()

    assert data["event_type"] == "SomethingHappened"
    assert data["aggregate_id"] == "7"
    assert data["payload"] == {"what": "ping"}


def test_failing_handler_does_not_stop_others():
    bus = MessageBus()
    received = []

    @bus.subscribe(SomethingHappened)
    def broken(event):
        raise RuntimeError("boom")

    @bus.subscribe(SomethingHappened)
    def recorder(event):
        received.append(event.what)

    bus.publish_events([SomethingHappened("a"), SomethingHappened("b")])

    assert received == ["a", "b"]


def test_registering_same_handler_twice_is_a_no_op():
    bus = MessageBus()

    def handler(event):
        pass

    bus.register_event_handler(SomethingHappened, handler)
    bus.register_event_handler(SomethingHappened, handler)

    assert bus.handlers_for(SomethingHappened) == [handler]


@pytest.fixture
def recorded_events():
    received = []

    def handler(event):
        received.append(event.marker)

    message_bus.register_event_handler(UowMarked, handler)
    yield received
    message_bus._event_handlers[UowMarked].remove(handler)


@pytest.mark.django_db
def test_unit_of_work_publishes_after_commit(recorded_events, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        with DjangoUnitOfWork() as uow:
            uow.add_event(UowMarked("committed"))
            assert recorded_events == []

    assert recorded_events == ["committed"]


@pytest.mark.django_db
def test_unit_of_work_discards_events_on_rollback(recorded_events, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        with pytest.raises(ValueError):
            with DjangoUnitOfWork() as uow:
                uow.add_event(UowMarked("rolled back"))
                raise ValueError("abort")

    assert recorded_events == []

"""
Unit tests for RSVPService: validation, capacity, upsert semantics and broadcasts.
"""
import pytest

from eventease.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from eventease.db.models import EventStatus, RSVPResponse
from eventease.db.repositories import update_event, list_rsvps_for_event
from eventease.services import rsvp_service as rsvp_service_module
from eventease.services.rsvp_service import RSVPService
from eventease.websocket.manager import ConnectionManager, event_room


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.fixture
def service(db_session, manager, published):
    return RSVPService(db_session, manager)


async def watch(manager, make_socket, event_id):
    conn = await manager.connect(make_socket())
    await manager.join(conn, event_room(event_id))
    return conn.websocket


@pytest.mark.unit
@pytest.mark.asyncio
class TestCreateOrUpdate:

    async def test_first_response_creates_row(self, service, event, guest, published):
        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Yes", "Can't wait", 2)
        stats = await service.tally(event.id)

        assert rsvp.response == RSVPResponse.Yes
        assert rsvp.plus_ones == 2
        assert stats == {"Yes": 1, "No": 0, "Maybe": 0, "total": 1}
        assert published == [("rsvp.updated", {
            "type": "rsvp.updated",
            "event_id": str(event.id),
            "user_id": str(guest.id),
            "response": "Yes",
        })]

    async def test_changing_response_keeps_one_row(self, service, db_session, event, guest):
        await service.create_or_update_rsvp(event.id, guest.id, "Yes")
        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "No")
        stats = await service.tally(event.id)

        assert rsvp.response == RSVPResponse.No
        assert stats == {"Yes": 0, "No": 1, "Maybe": 0, "total": 1}
        assert len(await list_rsvps_for_event(db_session, event.id)) == 1

    async def test_omitted_fields_are_retained(self, service, event, guest):
        await service.create_or_update_rsvp(event.id, guest.id, "Yes", "Bringing cake", 2)
        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Maybe", "")

        assert rsvp.response == RSVPResponse.Maybe
        assert rsvp.message == "Bringing cake"
        assert rsvp.plus_ones == 2

    @pytest.mark.parametrize("plus_ones", [0, 10])
    async def test_plus_ones_bounds_accepted(self, service, event, guest, plus_ones):
        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Yes", plus_ones=plus_ones)

        assert rsvp.plus_ones == plus_ones

    @pytest.mark.parametrize("plus_ones", [-1, 11])
    async def test_plus_ones_out_of_range(self, service, event, guest, plus_ones):
        with pytest.raises(InvalidInputError, match="Plus ones must be between 0 and 10"):
            await service.create_or_update_rsvp(event.id, guest.id, "Yes", plus_ones=plus_ones)

    async def test_unknown_response(self, service, event, guest):
        with pytest.raises(InvalidInputError, match="Yes, No, or Maybe"):
            await service.create_or_update_rsvp(event.id, guest.id, "Perhaps")

    async def test_message_too_long(self, service, event, guest):
        with pytest.raises(InvalidInputError, match="200 characters"):
            await service.create_or_update_rsvp(event.id, guest.id, "Yes", "x" * 201)

    async def test_missing_event(self, service, guest):
        import uuid

        with pytest.raises(NotFoundError, match="Event not found"):
            await service.create_or_update_rsvp(uuid.uuid4(), guest.id, "Yes")

    @pytest.mark.parametrize("status", [EventStatus.cancelled, EventStatus.completed])
    async def test_inactive_event_rejects(self, service, db_session, event, guest, status, published):
        await update_event(db_session, event, {"status": status})

        with pytest.raises(InvalidStateError, match="no longer accepting RSVPs"):
            await service.create_or_update_rsvp(event.id, guest.id, "Yes")
        assert published == []

    async def test_full_event_rejects_new_yes(self, service, db_session, event, owner, guest, other_guest):
        await update_event(db_session, event, {"max_attendees": 1})
        await service.create_or_update_rsvp(event.id, guest.id, "Yes")

        with pytest.raises(InvalidStateError, match="full capacity"):
            await service.create_or_update_rsvp(event.id, other_guest.id, "Yes")

        # Other answers are still fine, and the attendee may resubmit
        await service.create_or_update_rsvp(event.id, other_guest.id, "Maybe")
        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Yes", "Still coming")
        stats = await service.tally(event.id)
        assert rsvp.message == "Still coming"
        assert stats["Yes"] == 1

    async def test_broadcasts_to_event_room(self, service, manager, make_socket, event, guest):
        socket = await watch(manager, make_socket, event.id)

        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Maybe", "Depends on work")
        stats = await service.tally(event.id)

        assert len(socket.messages) == 1
        message = socket.messages[0]
        assert message["event"] == "rsvp-received"
        assert message["data"]["eventId"] == str(event.id)
        assert message["data"]["stats"] == stats
        assert message["data"]["rsvp"]["response"] == "Maybe"
        assert message["data"]["rsvp"]["user"]["name"] == "Bob Guest"

    async def test_broken_listener_does_not_fail_request(self, service, manager, make_socket, event, guest):
        conn = await manager.connect(make_socket(fail=True))
        await manager.join(conn, event_room(event.id))

        rsvp = await service.create_or_update_rsvp(event.id, guest.id, "Yes")

        assert rsvp.response == RSVPResponse.Yes
        assert manager.members(event_room(event.id)) == set()

    async def test_works_without_room_registry(self, db_session, event, guest, published):
        rsvp = await RSVPService(db_session).create_or_update_rsvp(event.id, guest.id, "No")

        assert rsvp.response == RSVPResponse.No

    async def test_submit_returns_the_broadcast_tally(self, service, manager, make_socket, event, guest, monkeypatch):
        socket = await watch(manager, make_socket, event.id)
        calls = []
        original = rsvp_service_module.db_count_rsvps_by_response

        async def counting(session, event_id):
            calls.append(event_id)
            return await original(session, event_id)

        monkeypatch.setattr(rsvp_service_module, "db_count_rsvps_by_response", counting)

        rsvp, stats = await service.submit_rsvp(event.id, guest.id, "Yes")

        assert rsvp.response == RSVPResponse.Yes
        assert stats == {"Yes": 1, "No": 0, "Maybe": 0, "total": 1}
        assert socket.messages[0]["data"]["stats"] == stats
        assert len(calls) == 1

    async def test_capacity_check_locks_event_first(self, service, db_session, event, guest, monkeypatch):
        await update_event(db_session, event, {"max_attendees": 5})
        order = []
        lock, count = rsvp_service_module.db_lock_event, rsvp_service_module.db_count_yes_responses

        async def recording_lock(session, event_id):
            order.append("lock")
            await lock(session, event_id)

        async def recording_count(session, event_id, exclude_user_id=None):
            order.append("count")
            return await count(session, event_id, exclude_user_id=exclude_user_id)

        monkeypatch.setattr(rsvp_service_module, "db_lock_event", recording_lock)
        monkeypatch.setattr(rsvp_service_module, "db_count_yes_responses", recording_count)

        await service.create_or_update_rsvp(event.id, guest.id, "Yes")
        await service.create_or_update_rsvp(event.id, guest.id, "No")

        # Only the capped Yes takes the lock
        assert order == ["lock", "count"]

    async def test_plus_ones_do_not_count_towards_capacity(self, service, db_session, event, guest, other_guest):
        await update_event(db_session, event, {"max_attendees": 2})
        await service.create_or_update_rsvp(event.id, guest.id, "Yes", plus_ones=5)

        rsvp = await service.create_or_update_rsvp(event.id, other_guest.id, "Yes")

        assert rsvp.response == RSVPResponse.Yes


@pytest.mark.unit
@pytest.mark.asyncio
class TestReadsAndDelete:

    async def test_event_rsvps_with_tally(self, service, event, guest, other_guest):
        await service.create_or_update_rsvp(event.id, guest.id, "Yes")
        await service.create_or_update_rsvp(event.id, other_guest.id, "No")

        rows, stats = await service.get_event_rsvps(event.id)

        assert len(rows) == stats["total"] == 2
        assert stats["Yes"] == 1 and stats["No"] == 1

    async def test_event_rsvps_missing_event(self, service):
        import uuid

        with pytest.raises(NotFoundError):
            await service.get_event_rsvps(uuid.uuid4())

    async def test_my_rsvp(self, service, rsvp, guest, other_guest):
        mine = await service.get_my_rsvp(rsvp.event_id, guest.id)
        assert mine.id == rsvp.id

        with pytest.raises(NotFoundError, match="No RSVP found for this event"):
            await service.get_my_rsvp(rsvp.event_id, other_guest.id)

    async def test_list_my_rsvps(self, service, rsvp, guest):
        rows = await service.list_my_rsvps(guest.id)

        assert [r.id for r in rows] == [rsvp.id]
        assert rows[0].event.title == "Summer Garden Party"

    async def test_delete_broadcasts_new_tally(self, service, manager, make_socket, rsvp, guest, published):
        event_id = rsvp.event_id
        socket = await watch(manager, make_socket, event_id)

        await service.delete_rsvp(event_id, guest.id)
        stats = await service.tally(event_id)

        assert stats == {"Yes": 0, "No": 0, "Maybe": 0, "total": 0}
        assert socket.messages[0]["data"]["deleted"] is True
        assert socket.messages[0]["data"]["rsvp"] is None
        assert published[-1][0] == "rsvp.deleted"

    async def test_delete_missing(self, service, event, guest):
        with pytest.raises(NotFoundError, match="RSVP not found"):
            await service.delete_rsvp(event.id, guest.id)

    async def test_withdraw_returns_the_broadcast_tally(self, service, manager, make_socket, rsvp, guest):
        socket = await watch(manager, make_socket, rsvp.event_id)

        stats = await service.withdraw_rsvp(rsvp.event_id, guest.id)

        assert stats == {"Yes": 0, "No": 0, "Maybe": 0, "total": 0}
        assert socket.messages[0]["data"]["stats"] == stats

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from myspace_api.exceptions import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from myspace_api.models import Friend, FriendRequest, User
from myspace_api.schemas.friends import FriendRequestStatus, RequestDirection
from myspace_api.schemas.notifications import NotificationType
from myspace_api.services import friends_service
from myspace_api.services.notification_service import NotificationPublisher
from myspace_api.services.friends_service import (
    are_friends,
    canonical_pair,
    get_friend_ids,
    get_friend_requests,
    get_friend_status,
    get_friends,
    materialize_friendship,
    remove_friend,
    respond_to_friend_request,
    send_friend_request,
    set_top8,
)


class BrokenTasks:
    """Background task queue that refuses every job."""

    def add_task(self, *args, **kwargs):
        raise RuntimeError("queue down")


def as_user(uid):
    return {"uid": uid}


async def edge_count(db):
    return (await db.execute(select(func.count()).select_from(Friend))).scalar_one()


async def befriend(db, publisher, requester, recipient):
    request = await send_friend_request(recipient, db, as_user(requester), publisher)
    await respond_to_friend_request(request.id, "accept", db, as_user(recipient), publisher)
    return request


def test_canonical_pair_orders_lowest_first():
    assert canonical_pair("bob", "alice") == ("alice", "bob")
    assert canonical_pair("alice", "bob") == ("alice", "bob")


class TestCreateRequest:
    async def test_creates_pending_request_and_notifies_recipient(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        assert request.status == FriendRequestStatus.PENDING
        assert (request.requester, request.recipient) == ("alice", "bob")
        assert request.id

        assert len(publisher.events) == 1
        event = publisher.events[0]
        assert event.user_id == "bob"
        assert event.actor == "alice"
        assert event.type == NotificationType.FRIEND_REQUEST
        assert event.payload == {"requestId": request.id}

    async def test_self_request_is_invalid(self, db, users, publisher):
        with pytest.raises(InvalidArgumentError):
            await send_friend_request("alice", db, as_user("alice"), publisher)
        assert publisher.events == []

    async def test_unknown_recipient_is_not_found(self, db, users, publisher):
        with pytest.raises(NotFoundError):
            await send_friend_request("nobody", db, as_user("alice"), publisher)

    @pytest.mark.parametrize("requester,recipient", [("alice", "bob"), ("bob", "alice")])
    async def test_duplicate_in_either_direction_conflicts(self, db, users, publisher, requester, recipient):
        first = await send_friend_request("bob", db, as_user("alice"), publisher)

        with pytest.raises(ConflictError):
            await send_friend_request(recipient, db, as_user(requester), publisher)

        await db.refresh(first)
        assert first.status == FriendRequestStatus.PENDING
        count = (await db.execute(select(func.count()).select_from(FriendRequest))).scalar_one()
        assert count == 1

    async def test_existing_friendship_conflicts(self, db, users, publisher):
        await befriend(db, publisher, "alice", "bob")

        with pytest.raises(ConflictError):
            await send_friend_request("alice", db, as_user("bob"), publisher)

    async def test_pending_pair_index_rejects_racing_insert(self, db, users, publisher):
        # Simulates a racing request that slipped past the read-side check
        db.add(FriendRequest(requester="bob", recipient="alice", pair_low="alice", pair_high="bob"))
        await db.commit()
        db.add(FriendRequest(requester="alice", recipient="bob", pair_low="alice", pair_high="bob"))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    async def test_new_request_allowed_after_terminal_one(self, db, users, publisher):
        first = await send_friend_request("bob", db, as_user("alice"), publisher)
        await respond_to_friend_request(first.id, "reject", db, as_user("bob"), publisher)

        second = await send_friend_request("alice", db, as_user("bob"), publisher)
        assert second.status == FriendRequestStatus.PENDING

    async def test_notification_failure_does_not_fail_request(self, db, users):
        publisher = NotificationPublisher(BrokenTasks(), session_factory=None)
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        assert request.status == FriendRequestStatus.PENDING


class TestRespond:
    async def test_requester_cannot_accept(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        with pytest.raises(ForbiddenError):
            await respond_to_friend_request(request.id, "accept", db, as_user("alice"), publisher)

        await db.refresh(request)
        assert request.status == FriendRequestStatus.PENDING

    async def test_recipient_cannot_cancel(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        with pytest.raises(ForbiddenError):
            await respond_to_friend_request(request.id, "cancel", db, as_user("bob"), publisher)

    async def test_bystander_cannot_reject(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        with pytest.raises(ForbiddenError):
            await respond_to_friend_request(request.id, "reject", db, as_user("carol"), publisher)

    async def test_unknown_request_is_not_found(self, db, users, publisher):
        with pytest.raises(NotFoundError):
            await respond_to_friend_request("missing-id", "accept", db, as_user("bob"), publisher)

    async def test_unknown_action_is_invalid(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        with pytest.raises(InvalidArgumentError):
            await respond_to_friend_request(request.id, "befriend", db, as_user("bob"), publisher)

    async def test_accept_creates_symmetric_friendship(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        publisher.events.clear()

        accepted = await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)

        assert accepted.status == FriendRequestStatus.ACCEPTED
        assert await get_friend_ids(db, "alice") == {"bob"}
        assert await get_friend_ids(db, "bob") == {"alice"}
        assert await edge_count(db) == 1

        assert [(e.user_id, e.actor, e.type) for e in publisher.events] == [
            ("alice", "bob", NotificationType.FRIEND_ACCEPT)
        ]

    async def test_accept_twice_conflicts_and_keeps_friendships(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)

        with pytest.raises(ConflictError):
            await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)

        assert await get_friend_ids(db, "alice") == {"bob"}
        assert await edge_count(db) == 1

    async def test_reject_creates_no_edge(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        rejected = await respond_to_friend_request(request.id, "reject", db, as_user("bob"), publisher)

        assert rejected.status == FriendRequestStatus.REJECTED
        assert await edge_count(db) == 0
        assert publisher.events[-1].type == NotificationType.FRIEND_REJECT

    async def test_cancel_then_accept_conflicts(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        cancelled = await respond_to_friend_request(request.id, "cancel", db, as_user("alice"), publisher)
        assert cancelled.status == FriendRequestStatus.CANCELLED

        with pytest.raises(ConflictError):
            await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)

        await db.refresh(request)
        assert request.status == FriendRequestStatus.CANCELLED
        assert await edge_count(db) == 0

    @pytest.mark.parametrize("action,actor", [("reject", "bob"), ("cancel", "alice")])
    async def test_terminal_states_are_final(self, db, users, publisher, action, actor):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        await respond_to_friend_request(request.id, action, db, as_user(actor), publisher)

        with pytest.raises(ConflictError):
            await respond_to_friend_request(request.id, action, db, as_user(actor), publisher)

    async def test_accept_with_existing_edge_is_idempotent(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        # Edge written by a concurrent acceptance
        await materialize_friendship(db, "bob", "alice")
        await db.commit()

        accepted = await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)

        assert accepted.status == FriendRequestStatus.ACCEPTED
        assert await edge_count(db) == 1

    async def test_stale_responder_loses_to_committed_accept(self, session_factory, users, publisher, monkeypatch):
        async with session_factory() as setup:
            request = await send_friend_request("bob", setup, as_user("alice"), publisher)
        publisher.events.clear()

        real_materialize = friends_service.materialize_friendship
        interleaved = []

        async def accept_elsewhere_first(db, user_id, other_id):
            # Another responder commits after this one has read the row as pending
            if not interleaved:
                interleaved.append(True)
                async with session_factory() as other:
                    await respond_to_friend_request(request.id, "accept", other, as_user("bob"), publisher)
            return await real_materialize(db, user_id, other_id)

        monkeypatch.setattr(friends_service, "materialize_friendship", accept_elsewhere_first)

        async with session_factory() as stale:
            with pytest.raises(ConflictError):
                await respond_to_friend_request(request.id, "accept", stale, as_user("bob"), publisher)

        async with session_factory() as session:
            assert await edge_count(session) == 1
            stored = await session.get(FriendRequest, request.id)
            assert stored.status == FriendRequestStatus.ACCEPTED
        assert [e.type for e in publisher.events] == [NotificationType.FRIEND_ACCEPT]

    async def test_failing_publisher_does_not_block_accept(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        broken = NotificationPublisher(BrokenTasks(), session_factory=None)
        accepted = await respond_to_friend_request(request.id, "accept", db, as_user("bob"), broken)
        assert accepted.status == FriendRequestStatus.ACCEPTED


class TestMaterializer:
    async def test_repeated_materialization_writes_one_edge(self, db, users):
        assert await materialize_friendship(db, "alice", "bob") is True
        assert await materialize_friendship(db, "bob", "alice") is False
        await db.commit()

        assert await edge_count(db) == 1
        edge = (await db.execute(select(Friend))).scalar_one()
        assert (edge.user_a, edge.user_b) == ("alice", "bob")

    async def test_racing_acceptances_write_one_edge(self, session_factory, users):
        async with session_factory() as first, session_factory() as second:
            # Both sides observed "not friends" before either wrote
            assert not await are_friends(first, "alice", "bob")
            assert not await are_friends(second, "bob", "alice")

            assert await materialize_friendship(first, "alice", "bob") is True
            await first.commit()

            assert await materialize_friendship(second, "bob", "alice") is False
            await second.commit()

        async with session_factory() as session:
            assert await edge_count(session) == 1


class TestUnfriend:
    @pytest.mark.parametrize("remover,other", [("alice", "bob"), ("bob", "alice")])
    async def test_unfriend_removes_edge_for_both(self, db, users, publisher, remover, other):
        await befriend(db, publisher, "alice", "bob")

        removed = await remove_friend(other, db, as_user(remover))

        assert removed is True
        assert await get_friend_ids(db, "alice") == set()
        assert await get_friend_ids(db, "bob") == set()

    async def test_unfriend_without_edge_is_noop(self, db, users, publisher):
        await befriend(db, publisher, "alice", "carol")

        removed = await remove_friend("bob", db, as_user("alice"))

        assert removed is False
        assert await get_friend_ids(db, "alice") == {"carol"}

    async def test_unfriend_prunes_top8(self, db, users, publisher):
        await befriend(db, publisher, "alice", "bob")
        await befriend(db, publisher, "carol", "alice")
        await set_top8(["bob", "carol"], db, as_user("alice"))
        await set_top8(["alice"], db, as_user("bob"))

        await remove_friend("bob", db, as_user("alice"))

        alice = await db.get(User, "alice")
        bob = await db.get(User, "bob")
        await db.refresh(alice)
        await db.refresh(bob)
        assert alice.top8 == ["carol"]
        assert bob.top8 == []


class TestQueries:
    async def test_list_friends_sorted_by_display_name(self, db, users, publisher):
        await befriend(db, publisher, "bob", "alice")
        await befriend(db, publisher, "alice", "carol")

        friends = await get_friends(db, as_user("alice"))
        assert [f.id for f in friends] == ["bob", "carol"]

    async def test_friend_requests_by_direction(self, db, users, publisher):
        outgoing = await send_friend_request("bob", db, as_user("alice"), publisher)
        incoming = await send_friend_request("alice", db, as_user("carol"), publisher)

        got_in = await get_friend_requests(RequestDirection.INCOMING, db, as_user("alice"))
        got_out = await get_friend_requests(RequestDirection.OUTGOING, db, as_user("alice"))
        got_all = await get_friend_requests(RequestDirection.ALL, db, as_user("alice"))

        assert [r.id for r in got_in] == [incoming.id]
        assert [r.id for r in got_out] == [outgoing.id]
        assert {r.id for r in got_all} == {incoming.id, outgoing.id}

    async def test_answered_requests_leave_the_inbox(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)
        await respond_to_friend_request(request.id, "reject", db, as_user("bob"), publisher)

        assert await get_friend_requests(RequestDirection.ALL, db, as_user("bob")) == []

    async def test_friend_status(self, db, users, publisher):
        request = await send_friend_request("bob", db, as_user("alice"), publisher)

        alice_view = await get_friend_status("bob", db, as_user("alice"))
        bob_view = await get_friend_status("alice", db, as_user("bob"))
        assert alice_view.is_friend is False
        assert alice_view.pending_request_id == request.id
        assert alice_view.pending_request_direction == RequestDirection.OUTGOING
        assert bob_view.pending_request_direction == RequestDirection.INCOMING

        await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)
        after = await get_friend_status("bob", db, as_user("alice"))
        assert after.is_friend is True
        assert after.pending_request_id is None


class TestTop8:
    async def test_sets_top8_of_friends(self, db, users, publisher):
        await befriend(db, publisher, "alice", "bob")

        assert await set_top8(["bob"], db, as_user("alice")) == ["bob"]

    async def test_rejects_non_friends(self, db, users, publisher):
        with pytest.raises(InvalidArgumentError):
            await set_top8(["carol"], db, as_user("alice"))

    async def test_rejects_duplicates(self, db, users, publisher):
        await befriend(db, publisher, "alice", "bob")
        with pytest.raises(InvalidArgumentError):
            await set_top8(["bob", "bob"], db, as_user("alice"))

    async def test_rejects_more_than_eight(self, db, users, publisher):
        with pytest.raises(InvalidArgumentError):
            await set_top8([f"user{i}" for i in range(9)], db, as_user("alice"))

    async def test_rejects_non_list(self, db, users, publisher):
        with pytest.raises(InvalidArgumentError):
            await set_top8("bob", db, as_user("alice"))


async def test_end_to_end_accept_then_unfriend(db, users, publisher):
    request = await send_friend_request("bob", db, as_user("alice"), publisher)
    assert request.status == FriendRequestStatus.PENDING

    accepted = await respond_to_friend_request(request.id, "accept", db, as_user("bob"), publisher)
    assert accepted.status == FriendRequestStatus.ACCEPTED
    assert await get_friend_ids(db, "alice") == {"bob"}
    assert await get_friend_ids(db, "bob") == {"alice"}

    await remove_friend("bob", db, as_user("alice"))
    assert await get_friend_ids(db, "alice") == set()
    assert await get_friend_ids(db, "bob") == set()

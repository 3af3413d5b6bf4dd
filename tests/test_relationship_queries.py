import uuid

import pytest
from sqlalchemy import text

from friendgraph.services.relationship_queries import RelationshipQueryService
from friendgraph.services.user_service import SqlMutualFriendCounter, SqlProfileResolver


class BrokenResolver:
    async def resolve(self, ids):
        raise ConnectionError("profile service down")


class BrokenCounter:
    async def count(self, user_a, user_b):
        raise ConnectionError("graph index down")


class FailingSqlResolver:
    def __init__(self, db):
        self.db = db

    async def resolve(self, ids):
        await self.db.execute(text("SELECT nickname FROM users"))
        return {}


@pytest.fixture
def queries(store, db_session):
    return RelationshipQueryService(
        store, SqlMutualFriendCounter(db_session), SqlProfileResolver(db_session)
    )


@pytest.mark.asyncio
async def test_incoming_includes_requester_and_mutual_count(
    queries, store, test_user, second_user, third_user
):
    await store.insert_friendship(test_user.id, third_user.id)
    await store.insert_friendship(second_user.id, third_user.id)
    await store.insert_request(second_user.id, test_user.id)
    await store.commit()

    incoming = await queries.list_incoming(test_user.id)

    assert len(incoming) == 1
    entry = incoming[0]
    assert entry["requester_id"] == second_user.id
    assert entry["status"] == "pending"
    assert entry["requester"]["first_name"] == "Mehmet"
    assert entry["mutual_friends_count"] == 1


@pytest.mark.asyncio
async def test_incoming_skips_answered_requests(queries, store, test_user, second_user):
    await store.insert_request(second_user.id, test_user.id, status="rejected")
    await store.commit()

    assert await queries.list_incoming(test_user.id) == []


@pytest.mark.asyncio
async def test_outgoing_includes_receiver_profile(queries, store, test_user, second_user):
    await store.insert_request(test_user.id, second_user.id)
    await store.commit()

    outgoing = await queries.list_outgoing(test_user.id)

    assert [o["receiver"]["email"] for o in outgoing] == ["mehmet@example.com"]
    assert await queries.list_incoming(test_user.id) == []


@pytest.mark.asyncio
async def test_friends_listed_from_either_column(
    queries, store, test_user, second_user, third_user
):
    await store.insert_friendship(test_user.id, second_user.id)
    await store.insert_friendship(third_user.id, test_user.id)
    await store.commit()

    friends = await queries.list_friends(test_user.id)

    assert {f["id"] for f in friends} == {second_user.id, third_user.id}
    assert all(f["since"] is not None for f in friends)
    assert {f["last_name"] for f in friends} == {"Demir", "Sahin"}


@pytest.mark.asyncio
async def test_no_friends_returns_empty_list(queries):
    assert await queries.list_friends(uuid.uuid4()) == []


# ── Degraded lookups ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_profile_failure_degrades_to_ids(store, db_session):
    me, friend, sender = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    await store.insert_friendship(me, friend)
    await store.insert_request(sender, me)
    await store.commit()
    queries = RelationshipQueryService(
        store, SqlMutualFriendCounter(db_session), BrokenResolver()
    )

    friends = await queries.list_friends(me)
    incoming = await queries.list_incoming(me)

    assert [f["id"] for f in friends] == [friend]
    assert "first_name" not in friends[0]
    assert incoming[0]["requester"] is None
    assert incoming[0]["requester_id"] == sender


@pytest.mark.asyncio
async def test_mutual_count_failure_degrades_to_zero(store, db_session, test_user, second_user):
    await store.insert_request(second_user.id, test_user.id)
    await store.commit()
    queries = RelationshipQueryService(store, BrokenCounter(), SqlProfileResolver(db_session))

    incoming = await queries.list_incoming(test_user.id)

    assert incoming[0]["mutual_friends_count"] == 0
    assert incoming[0]["requester"]["id"] == second_user.id


@pytest.mark.asyncio
async def test_failed_lookup_statement_does_not_poison_later_counts(
    store, db_session, test_user, second_user, third_user
):
    await store.insert_friendship(test_user.id, third_user.id)
    await store.insert_friendship(second_user.id, third_user.id)
    await store.insert_request(second_user.id, test_user.id)
    await store.commit()
    queries = RelationshipQueryService(
        store, SqlMutualFriendCounter(db_session), FailingSqlResolver(db_session)
    )

    incoming = await queries.list_incoming(test_user.id)

    assert incoming[0]["requester"] is None
    assert incoming[0]["mutual_friends_count"] == 1
    await store.commit()

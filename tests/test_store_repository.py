"""Unit tests for store/repository.py -- the generic simple-entity contract.

Covers:
- create() assigns a UUID, reflects server defaults, rejects store-owned fields
- create() surfaces uniqueness violations as EntityConflictError
- find() caps the page at MAX_PAGE_SIZE while total counts every match
- predicates: AND objects, OR lists, operators, relation by entity or by id
- save()/remove() refuse entities the store did not produce
- remove() soft-deletes accounts and physically deletes tokens
- a soft-deleted relation target joins as None unless with_deleted
- unit of work: writes inside a failed transaction roll back
"""

import dataclasses
import uuid
from datetime import timedelta

import pytest

from accounts.models import Account, Role
from accounts.repositories import AccountRepository, VerificationTokenRepository
from store.entity import utcnow
from store.errors import EntityConflictError, PreconditionViolation
from store.operators import Between, In, IsNull, LessThan, Like, MoreThan, Not
from store.repository import MAX_PAGE_SIZE

pytestmark = pytest.mark.asyncio

_PAYLOAD = {"password_hash": "x" * 60, "password_salt": "s" * 29, "role": Role.END_USER}


def _account_payload(email: str) -> dict:
    return {"email": email, **_PAYLOAD}


@pytest.fixture
def accounts(database) -> AccountRepository:
    return AccountRepository(database)


@pytest.fixture
def tokens(database) -> VerificationTokenRepository:
    return VerificationTokenRepository(database)


# ---------------------------------------------------------------------------
# create / find_one
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_create_assigns_uuid_and_server_defaults(self, accounts, audit) -> None:
        account = await accounts.create(_account_payload("a@example.com"), audit)
        assert str(uuid.UUID(account.id)) == account.id
        assert account.is_verified is False
        assert account.created_at is not None
        assert account.updated_at is not None
        assert account.deleted_at is None
        assert account.role is Role.END_USER

    async def test_created_entity_is_retrievable(self, accounts, audit) -> None:
        created = await accounts.create(_account_payload("b@example.com"), audit)
        found = await accounts.find_one({"id": created.id})
        assert found == created

    async def test_each_create_gets_a_distinct_id(self, accounts, audit) -> None:
        first = await accounts.create(_account_payload("c1@example.com"), audit)
        second = await accounts.create(_account_payload("c2@example.com"), audit)
        assert first.id != second.id

    @pytest.mark.parametrize("field", ["id", "created_at", "is_verified", "deleted_at"])
    async def test_create_rejects_store_owned_fields(self, accounts, audit, field) -> None:
        payload = {**_account_payload("d@example.com"), field: None}
        with pytest.raises(PreconditionViolation):
            await accounts.create(payload, audit)

    async def test_create_rejects_unknown_fields(self, accounts, audit) -> None:
        with pytest.raises(PreconditionViolation):
            await accounts.create({**_account_payload("e@example.com"), "nickname": "e"}, audit)

    async def test_duplicate_email_is_a_typed_conflict(self, accounts, audit) -> None:
        await accounts.create(_account_payload("dup@example.com"), audit)
        with pytest.raises(EntityConflictError) as excinfo:
            await accounts.create(_account_payload("dup@example.com"), audit)
        assert excinfo.value.table == "accounts"
        assert await accounts.count({"email": "dup@example.com"}) == 1

    async def test_find_one_returns_none_when_nothing_matches(self, accounts) -> None:
        assert await accounts.find_one({"email": "nobody@example.com"}) is None

    async def test_find_one_unknown_field_is_precondition_violation(self, accounts) -> None:
        with pytest.raises(PreconditionViolation):
            await accounts.find_one({"nickname": "x"})


# ---------------------------------------------------------------------------
# find -- pagination, ordering, predicates
# ---------------------------------------------------------------------------


class TestFind:
    async def test_page_is_capped_and_total_is_full_count(self, accounts, audit) -> None:
        for i in range(MAX_PAGE_SIZE + 10):
            await accounts.create(_account_payload(f"user{i:03d}@example.com"), audit)

        page = await accounts.find(take=500)
        assert page.limit == MAX_PAGE_SIZE
        assert len(page.rows) == MAX_PAGE_SIZE
        assert page.total == MAX_PAGE_SIZE + 10

    async def test_skip_returns_the_remainder(self, accounts, audit) -> None:
        for i in range(MAX_PAGE_SIZE + 10):
            await accounts.create(_account_payload(f"user{i:03d}@example.com"), audit)

        page = await accounts.find(skip=MAX_PAGE_SIZE, order={"email": "ASC"})
        assert page.total == MAX_PAGE_SIZE + 10
        assert [a.email for a in page.rows] == [f"user{i:03d}@example.com" for i in range(50, 60)]

    async def test_smaller_take_is_honoured(self, accounts, audit) -> None:
        for i in range(5):
            await accounts.create(_account_payload(f"t{i}@example.com"), audit)
        page = await accounts.find(take=2)
        assert page.limit == 2
        assert len(page.rows) == 2
        assert page.total == 5

    async def test_negative_skip_rejected(self, accounts) -> None:
        with pytest.raises(PreconditionViolation):
            await accounts.find(skip=-1)

    async def test_order_desc_and_numeric_direction(self, accounts, audit) -> None:
        for email in ("b@example.com", "a@example.com", "c@example.com"):
            await accounts.create(_account_payload(email), audit)
        desc = await accounts.find(order={"email": "DESC"})
        assert [a.email for a in desc.rows] == ["c@example.com", "b@example.com", "a@example.com"]
        asc = await accounts.find(order={"email": 1})
        assert [a.email for a in asc.rows] == ["a@example.com", "b@example.com", "c@example.com"]

    async def test_invalid_order_direction_rejected(self, accounts) -> None:
        with pytest.raises(PreconditionViolation):
            await accounts.find(order={"email": "sideways"})

    async def test_list_predicate_is_or_of_ands(self, accounts, audit) -> None:
        a = await accounts.create(_account_payload("a@example.com"), audit)
        b = await accounts.create(_account_payload("b@example.com"), audit)
        await accounts.create(_account_payload("c@example.com"), audit)

        page = await accounts.find([{"email": "a@example.com"}, {"email": "b@example.com"}])
        assert {r.id for r in page.rows} == {a.id, b.id}
        assert page.total == 2

    async def test_operators(self, accounts, audit) -> None:
        for email in ("ann@example.com", "bob@example.org", "cat@example.com"):
            await accounts.create(_account_payload(email), audit)

        like = await accounts.find({"email": Like("%@example.com")})
        assert like.total == 2
        in_ = await accounts.find({"email": In(["ann@example.com", "bob@example.org"])})
        assert in_.total == 2
        not_ = await accounts.find({"email": Not("ann@example.com")})
        assert not_.total == 2
        not_null = await accounts.find({"deleted_at": Not(None)}, with_deleted=True)
        assert not_null.total == 0
        is_null = await accounts.find({"deleted_at": IsNull()})
        assert is_null.total == 3
        between = await accounts.find({"email": Between("a", "bz")})
        assert between.total == 2

    async def test_relation_by_entity_or_id_resolves_identically(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("rel@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)

        by_entity = await tokens.find_one({"account": account})
        by_id = await tokens.find_one({"account": account.id})
        assert by_entity == by_id
        assert by_entity.id == token.id

    async def test_relation_is_materialized_eagerly(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("eager@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)

        found = await tokens.find_one({"id": token.id})
        assert isinstance(found.account, Account)
        assert found.account.email == "eager@example.com"

    async def test_soft_deleted_relation_target_is_hidden_unless_with_deleted(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("orphan@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)
        await accounts.remove(account, audit)

        hidden = await tokens.find_one({"id": token.id})
        assert hidden is not None and hidden.account is None
        assert await tokens.find_live_by_id(token.id) is None
        assert await tokens.find_live_by_account(account) is None

        shown = await tokens.find_one({"id": token.id}, with_deleted=True)
        assert shown.account.id == account.id
        assert shown.account.is_deleted

    async def test_time_operators_on_tokens(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("ttl@example.com"), audit)
        await tokens.create_token(account, timedelta(hours=1), audit)
        await tokens.create_token(account, timedelta(hours=-1), audit)

        assert (await tokens.find({"expires_at": MoreThan(utcnow())})).total == 1
        assert (await tokens.find({"expires_at": LessThan(utcnow())})).total == 1


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------


class TestSave:
    async def test_save_persists_field_changes(self, accounts, audit) -> None:
        account = await accounts.create(_account_payload("s@example.com"), audit)
        account.is_verified = True
        account.role = Role.ADMIN
        await accounts.save(account, audit)

        reloaded = await accounts.find_one({"id": account.id})
        assert reloaded.is_verified is True
        assert reloaded.role is Role.ADMIN

    async def test_save_related_entity_through_its_own_repository(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("via-token@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)

        loaded = await tokens.find_one({"id": token.id})
        loaded.account.is_verified = True
        await accounts.save(loaded.account, audit)
        assert (await accounts.find_one({"id": account.id})).is_verified is True

    async def test_save_reinserts_a_physically_removed_row(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("upsert@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)
        await tokens.remove(token, audit)
        assert await tokens.find_one({"id": token.id}) is None

        await tokens.save(token, audit)
        assert (await tokens.find_one({"id": token.id})).id == token.id

    async def test_save_rejects_hand_built_entity(self, accounts, audit) -> None:
        forged = Account(id=str(uuid.uuid4()), email="forged@example.com", **_PAYLOAD)
        with pytest.raises(PreconditionViolation):
            await accounts.save(forged, audit)
        assert await accounts.find_one({"email": "forged@example.com"}) is None

    async def test_save_rejects_copy_of_store_entity(self, accounts, audit) -> None:
        account = await accounts.create(_account_payload("copy@example.com"), audit)
        with pytest.raises(PreconditionViolation):
            await accounts.save(dataclasses.replace(account, email="changed@example.com"), audit)

    async def test_save_rejects_entity_from_another_store(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("other@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)
        with pytest.raises(PreconditionViolation):
            await accounts.save(token, audit)
        with pytest.raises(PreconditionViolation):
            await tokens.save(account, audit)


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


class TestRemove:
    async def test_soft_remove_hides_row_unless_with_deleted(self, accounts, audit) -> None:
        account = await accounts.create(_account_payload("gone@example.com"), audit)
        await accounts.remove(account, audit)

        assert account.deleted_at is not None
        assert await accounts.find_one({"id": account.id}) is None
        assert (await accounts.find({"id": account.id})).total == 0
        found = await accounts.find_one({"id": account.id}, with_deleted=True)
        assert found is not None and found.is_deleted
        assert (await accounts.find({"id": account.id}, with_deleted=True)).total == 1

    async def test_hard_remove_is_unretrievable_under_any_option(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("hard@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)
        await tokens.remove(token, audit)

        assert await tokens.find_one({"id": token.id}) is None
        assert await tokens.find_one({"id": token.id}, with_deleted=True) is None
        assert (await tokens.find({"id": token.id}, with_deleted=True)).total == 0

    async def test_remove_rejects_foreign_instance(self, accounts, audit) -> None:
        forged = Account(id=str(uuid.uuid4()), email="x@example.com", **_PAYLOAD)
        with pytest.raises(PreconditionViolation):
            await accounts.remove(forged, audit)

    async def test_remove_rejects_token_handed_to_account_store(self, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("mixed@example.com"), audit)
        token = await tokens.create_token(account, timedelta(hours=1), audit)
        with pytest.raises(PreconditionViolation):
            await accounts.remove(token, audit)
        assert await tokens.find_one({"id": token.id}) is not None

    async def test_delete_where_needs_a_predicate(self, tokens, audit) -> None:
        with pytest.raises(PreconditionViolation):
            await tokens.delete_where({}, audit)

    async def test_delete_for_account_only_touches_that_account(self, accounts, tokens, audit) -> None:
        mine = await accounts.create(_account_payload("mine@example.com"), audit)
        theirs = await accounts.create(_account_payload("theirs@example.com"), audit)
        await tokens.create_token(mine, timedelta(hours=1), audit)
        await tokens.create_token(mine, timedelta(hours=-1), audit)
        await tokens.create_token(theirs, timedelta(hours=1), audit)

        assert await tokens.delete_for_account(mine, audit) == 2
        assert await tokens.count({"account": mine}) == 0
        assert await tokens.count({"account": theirs}) == 1


# ---------------------------------------------------------------------------
# unit of work
# ---------------------------------------------------------------------------


class TestUnitOfWork:
    async def test_writes_in_a_failed_transaction_roll_back(self, database, accounts, audit) -> None:
        with pytest.raises(RuntimeError):
            async with database.transaction() as unit:
                await accounts.create(_account_payload("rollback@example.com"), audit, unit=unit)
                assert await accounts.find_one({"email": "rollback@example.com"}, unit=unit) is not None
                raise RuntimeError("abort")
        assert await accounts.find_one({"email": "rollback@example.com"}) is None

    async def test_writes_in_a_committed_transaction_persist(self, database, accounts, tokens, audit) -> None:
        async with database.transaction() as unit:
            account = await accounts.create(_account_payload("commit@example.com"), audit, unit=unit)
            await tokens.create_token(account, timedelta(hours=1), audit, unit=unit)
        assert await tokens.count({"account": account}) == 1

    async def test_deleting_account_row_cascades_to_tokens(self, database, accounts, tokens, audit) -> None:
        account = await accounts.create(_account_payload("cascade@example.com"), audit)
        await tokens.create_token(account, timedelta(hours=1), audit)
        async with database.transaction() as unit:
            table = accounts.schema.table
            await unit.execute(table.delete().where(table.c.id == account.id))
        assert await tokens.count({"account": account.id}) == 0


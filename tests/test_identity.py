import pytest

from socialgraph.core.exceptions import NotFound
from socialgraph.core.pagination import PageRequest
from socialgraph.schemas.user import UserRef
from socialgraph.services import SubscriptionService
from tests.conftest import at


class TestIdentity:
    """Identity lookup tests."""

    @pytest.mark.asyncio
    async def test_resolve(self, identity, alice):
        """Test resolving a user id."""
        ref = await identity.resolve(alice.id)

        assert ref == UserRef(id=alice.id, username="alice", email="alice@example.com", is_active=True)

    @pytest.mark.asyncio
    async def test_resolve_unknown_user(self, identity):
        """Test resolve unknown user."""
        with pytest.raises(NotFound) as exc_info:
            await identity.resolve(99999)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_exists(self, identity, alice):
        """Test checking whether a user exists."""
        assert await identity.exists(alice.id)
        assert not await identity.exists(99999)

    @pytest.mark.asyncio
    async def test_lookup_by_username_and_email(self, identity, alice):
        """Test lookup by username and email."""
        assert (await identity.get_by_username("alice")).id == alice.id
        assert (await identity.get_by_email("alice@example.com")).id == alice.id
        assert await identity.get_by_username("nobody") is None
        assert await identity.username_exists("alice")
        assert not await identity.email_exists("nobody@example.com")

    @pytest.mark.asyncio
    async def test_search(self, identity, make_user):
        """Test searching users by username or email."""
        for name in ("anna", "annette", "bruno"):
            await make_user(name)

        page = await identity.search("ann", PageRequest(page=0, size=10, direction="asc"))

        assert page.total_elements == 2
        assert [user.username for user in page.items] == ["anna", "annette"]

    @pytest.mark.asyncio
    async def test_deactivate(self, identity, alice, bob):
        """Test deactivating a user."""
        assert await identity.deactivate(alice.id)
        assert not await identity.deactivate(99999)

        assert not (await identity.resolve(alice.id)).is_active
        assert [user.id for user in await identity.list_active()] == [bob.id]

    @pytest.mark.asyncio
    async def test_services_consult_injected_lookup(self, db_session, alice, bob):
        """Test that an injected identity lookup decides which users exist."""

        class OnlyAlice:
            async def resolve(self, user_id):
                raise NotFound("User", user_id)

            async def exists(self, user_id):
                return user_id == alice.id

        service = SubscriptionService(db_session, identity=OnlyAlice())

        with pytest.raises(NotFound):
            await service.follow(alice.id, bob.id)

    @pytest.mark.asyncio
    async def test_reads_accept_stored_reserved_domain_email(self, identity, subscriptions, make_user, alice):
        """Test that rows with a reserved-domain email still resolve and list."""
        dave = await make_user("dave", email="dave@corp.local")
        await subscriptions.follow(dave.id, alice.id)

        ref = await identity.resolve(dave.id)
        followers = await subscriptions.list_followers(alice.id, PageRequest(page=0, size=10))
        found = await identity.search("corp.local", PageRequest(page=0, size=10))

        assert ref.email == "dave@corp.local"
        assert [user.email for user in followers.items] == ["dave@corp.local"]
        assert [user.id for user in found.items] == [dave.id]

    @pytest.mark.asyncio
    async def test_list_created_after_includes_the_boundary(self, identity, make_user):
        """Test that a user created exactly at the cutoff is listed."""
        early = await make_user("early", created_at=at(0))
        on_time = await make_user("on_time", created_at=at(10))
        late = await make_user("late", created_at=at(20))

        listed = await identity.list_created_after(at(10))

        assert [user.id for user in listed] == [on_time.id, late.id]
        assert early.id not in [user.id for user in listed]

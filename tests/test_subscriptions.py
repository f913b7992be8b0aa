import pytest

from socialgraph.core.exceptions import ConstraintViolation, DuplicatePair, NotFound, ValidationFailed
from socialgraph.core.pagination import PageRequest
from tests.conftest import at


class TestFollow:
    """Follow and unfollow."""

    @pytest.mark.asyncio
    async def test_follow(self, subscriptions, alice, bob):
        """Test following a user."""
        subscription = await subscriptions.follow(alice.id, bob.id)

        assert subscription.id is not None
        assert subscription.follower_id == alice.id
        assert subscription.following_id == bob.id
        assert await subscriptions.is_following(alice.id, bob.id)
        assert not await subscriptions.is_following(bob.id, alice.id)

    @pytest.mark.asyncio
    async def test_follow_twice_fails(self, subscriptions, alice, bob):
        """Test following the same user twice fails."""
        await subscriptions.follow(alice.id, bob.id)

        with pytest.raises(DuplicatePair):
            await subscriptions.follow(alice.id, bob.id)

        assert await subscriptions.count_following(alice.id) == 1

    @pytest.mark.asyncio
    async def test_follow_back_is_a_separate_edge(self, subscriptions, alice, bob):
        """Test follow back is a separate edge."""
        await subscriptions.follow(alice.id, bob.id)
        await subscriptions.follow(bob.id, alice.id)

        assert await subscriptions.count_followers(alice.id) == 1
        assert await subscriptions.count_followers(bob.id) == 1

    @pytest.mark.asyncio
    async def test_follow_yourself_fails(self, subscriptions, alice):
        """Test follow yourself fails."""
        with pytest.raises(ValidationFailed):
            await subscriptions.follow(alice.id, alice.id)

    @pytest.mark.asyncio
    async def test_follow_unknown_user_fails(self, subscriptions, alice):
        """Test follow unknown user fails."""
        with pytest.raises(NotFound):
            await subscriptions.follow(alice.id, 99999)

    @pytest.mark.asyncio
    async def test_unfollow_removes_only_that_edge(self, subscriptions, alice, bob):
        """Test unfollow removes only that edge."""
        await subscriptions.follow(alice.id, bob.id)
        await subscriptions.follow(bob.id, alice.id)

        assert await subscriptions.unfollow(alice.id, bob.id) is True

        assert await subscriptions.find_by_pair(alice.id, bob.id) is None
        assert await subscriptions.find_by_pair(bob.id, alice.id) is not None

    @pytest.mark.asyncio
    async def test_unfollow_is_idempotent(self, subscriptions, alice, bob):
        """Test unfollow is idempotent."""
        assert await subscriptions.unfollow(alice.id, bob.id) is False

        await subscriptions.follow(alice.id, bob.id)
        assert await subscriptions.unfollow(alice.id, bob.id) is True
        assert await subscriptions.unfollow(alice.id, bob.id) is False

    @pytest.mark.asyncio
    async def test_follow_again_after_unfollow(self, subscriptions, alice, bob):
        """Test follow again after unfollow."""
        await subscriptions.follow(alice.id, bob.id)
        await subscriptions.unfollow(alice.id, bob.id)

        await subscriptions.follow(alice.id, bob.id)

        assert await subscriptions.is_following(alice.id, bob.id)


class TestFollowLists:
    """Counting and listing follow edges."""

    @pytest.mark.asyncio
    async def test_counts(self, subscriptions, alice, bob, carol):
        """Test follower and following counts."""
        await subscriptions.follow(alice.id, bob.id)
        await subscriptions.follow(alice.id, carol.id)
        await subscriptions.follow(carol.id, bob.id)

        assert await subscriptions.count_following(alice.id) == 2
        assert await subscriptions.count_followers(bob.id) == 2
        assert await subscriptions.count_followers(alice.id) == 0

    @pytest.mark.asyncio
    async def test_list_following_most_recent_first(self, db_session, subscriptions, make_user, alice):
        """Test list following most recent first."""
        followed = []
        for i in range(3):
            user = await make_user(f"author_{i}")
            subscription = await subscriptions.follow(alice.id, user.id)
            subscription.created_at = at(i)
            followed.append(user)
        await db_session.flush()

        page = await subscriptions.list_following(alice.id, PageRequest(page=0, size=2))

        assert page.total_elements == 3
        assert page.total_pages == 2
        assert [user.username for user in page.items] == ["author_2", "author_1"]
        assert page.has_next

    @pytest.mark.asyncio
    async def test_list_followers(self, subscriptions, alice, bob, carol):
        """Test list followers."""
        await subscriptions.follow(bob.id, alice.id)
        await subscriptions.follow(carol.id, alice.id)

        page = await subscriptions.list_followers(alice.id, PageRequest(page=0, size=10))

        assert page.total_elements == 2
        assert {user.username for user in page.items} == {"bob", "carol"}

    @pytest.mark.asyncio
    async def test_list_past_the_end_is_empty(self, subscriptions, alice, bob):
        """Test list past the end is empty."""
        await subscriptions.follow(alice.id, bob.id)

        page = await subscriptions.list_following(alice.id, PageRequest(page=5, size=10))

        assert page.items == []
        assert page.total_elements == 1
        assert page.total_pages == 1


class TestConcurrentFollow:
    """Follows that get past the pre-check and hit the unique index."""

    @pytest.mark.asyncio
    async def test_unique_index_rejects_second_follow(self, monkeypatch, subscriptions, alice, bob):
        """Test that a racing duplicate follow raises DuplicatePair."""
        await subscriptions.follow(alice.id, bob.id)

        async def not_following(follower_id, following_id):
            return False

        monkeypatch.setattr(subscriptions, "is_following", not_following)

        with pytest.raises(DuplicatePair):
            await subscriptions.follow(alice.id, bob.id)

    @pytest.mark.asyncio
    async def test_other_integrity_errors_raise_constraint_violation(
        self, monkeypatch, subscriptions, alice, bob
    ):
        """Test that an unclassified store rejection raises ConstraintViolation."""
        await subscriptions.follow(alice.id, bob.id)

        async def not_following(follower_id, following_id):
            return False

        monkeypatch.setattr(subscriptions, "is_following", not_following)
        monkeypatch.setattr("socialgraph.services.subscription.is_unique_violation", lambda exc: False)

        with pytest.raises(ConstraintViolation) as exc_info:
            await subscriptions.follow(alice.id, bob.id)

        assert exc_info.value.status_code == 409

"""
Unit tests for business logic (services layer).
Most tests run against the test database; storage failures are simulated with mocks.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi import Response
from sqlalchemy.exc import OperationalError

from blog_service import services
from blog_service.auth import verify_token
from blog_service.crud import insert_post, select_post
from blog_service.errors import (
    ValidationError,
    AuthenticationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    GoneError,
    InternalError,
)
from blog_service.schemas import UserCreate, UserLogin, PostCreate, PostFilters


def storage_failure():
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.asyncio
class TestCreateUser:
    """Test create_user service function."""

    async def test_normalizes_and_persists(self, database):
        user = await services.create_user(database, UserCreate(
            name="  Leanne Graham ", username=" Bret ", email="  Sincere@April.BIZ "
        ))

        assert user.id is not None
        assert user.name == "Leanne Graham"
        assert user.username == "Bret"
        assert user.email == "sincere@april.biz"

        stored = await services.find_user_by_id(database, user.id)
        assert stored == user

    async def test_duplicate_email_is_conflict(self, database):
        await services.create_user(database, UserCreate(name="First", username="first", email="same@example.com"))

        with pytest.raises(ConflictError) as exc_info:
            await services.create_user(
                database, UserCreate(name="Second", username="second", email="SAME@example.com")
            )
        assert exc_info.value.status_code == 409
        assert "email" in exc_info.value.message

    async def test_duplicate_username_is_conflict(self, database):
        await services.create_user(database, UserCreate(name="First", username="taken", email="a@example.com"))

        with pytest.raises(ConflictError) as exc_info:
            await services.create_user(database, UserCreate(name="Second", username="taken", email="b@example.com"))
        assert exc_info.value.message == "User with this username already exists"

    async def test_missing_fields_fail_before_storage(self):
        with patch("blog_service.services.crud.insert_user", new_callable=AsyncMock) as mock_insert:
            with pytest.raises(ValidationError) as exc_info:
                await services.create_user(None, UserCreate(name="Leanne"))
            mock_insert.assert_not_called()
        assert exc_info.value.errors == ["Username is required", "Email is required"]

    async def test_storage_failure_is_internal(self):
        with patch("blog_service.services.crud.insert_user", new_callable=AsyncMock, side_effect=storage_failure()):
            with pytest.raises(InternalError) as exc_info:
                await services.create_user(None, UserCreate(name="Leanne", username="bret", email="l@example.com"))
        assert exc_info.value.message == "Failed to create user"


@pytest.mark.asyncio
class TestUserQueries:
    """Test lookups, listing and profile."""

    async def test_find_by_email_normalizes(self, database, author):
        user = await services.find_user_by_email(database, "  ALICE@example.com ")
        assert user.id == author.id

    async def test_find_missing(self, database):
        assert await services.find_user_by_email(database, "nobody@example.com") is None
        assert await services.find_user_by_id(database, 404) is None

    async def test_list_users_projection(self, database, author, other_user):
        users = await services.list_users(database)
        assert [u.model_dump() for u in users] == [
            {"id": author.id, "name": "Alice Author", "username": "alice"},
            {"id": other_user.id, "name": "Bob Other", "username": "bob"},
        ]

    async def test_profile_counts_live_posts(self, database, author):
        await insert_post(database, author.id, "One", "Body number one")
        await insert_post(database, author.id, "Two", "Body number two")

        profile = await services.get_user_profile(database, author.id)
        assert profile.email == "alice@example.com"
        assert profile.post_count == 2

    async def test_profile_missing_user(self, database):
        assert await services.get_user_profile(database, 999) is None

    async def test_lookup_failure_is_internal(self):
        with patch("blog_service.services.crud.select_user", new_callable=AsyncMock, side_effect=storage_failure()):
            with pytest.raises(InternalError, match="Failed to find user"):
                await services.find_user_by_id(None, 1)


@pytest.mark.asyncio
class TestListPosts:
    """Test list_posts service function."""

    async def test_pagination_over_fifteen_posts(self, database, author):
        for i in range(15):
            await insert_post(database, author.id, f"Post {i}", "A body long enough")

        first = await services.list_posts(database, PostFilters(page=1, limit=10))
        assert len(first.posts) == 10
        assert first.total == 15
        assert first.has_more is True
        assert first.posts[0].title == "Post 14"

        second = await services.list_posts(database, PostFilters(page=2, limit=10))
        assert len(second.posts) == 5
        assert second.has_more is False
        assert second.posts[-1].title == "Post 0"

    async def test_deleted_posts_hidden_unless_requested(self, database, author):
        keep = await insert_post(database, author.id, "Keep", "A body long enough")
        drop = await insert_post(database, author.id, "Drop", "A body long enough")
        await services.delete_post(database, drop.id, author.id)

        visible = await services.list_posts(database, PostFilters(include_deleted=False))
        assert [p.id for p in visible.posts] == [keep.id]
        assert all(not p.deleted for p in visible.posts)

        everything = await services.list_posts(database, PostFilters(include_deleted=True))
        assert any(p.deleted for p in everything.posts)
        assert everything.total == 2

    async def test_defaults(self, database):
        result = await services.list_posts(database)
        assert result.posts == []
        assert result.total == 0
        assert result.has_more is False
        assert result.page == 1
        assert result.limit == 10

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101), (-3, 5)])
    async def test_bad_pagination(self, page, limit):
        with pytest.raises(ValidationError):
            await services.list_posts(None, PostFilters(page=page, limit=limit))

    async def test_page_offset_beyond_storage_range(self):
        with patch("blog_service.services.crud.list_posts", new_callable=AsyncMock) as mock_list:
            with pytest.raises(ValidationError, match="Page is out of range"):
                await services.list_posts(None, PostFilters(page=10**19, limit=10))
            mock_list.assert_not_called()

    async def test_storage_failure_is_internal(self):
        with patch("blog_service.services.crud.list_posts", new_callable=AsyncMock, side_effect=storage_failure()):
            with pytest.raises(InternalError, match="Failed to fetch posts"):
                await services.list_posts(None)


@pytest.mark.asyncio
class TestCreatePost:
    """Test create_post service function."""

    async def test_creates_trimmed_post_for_actor(self, database, author):
        post = await services.create_post(
            database, author.id, PostCreate(title="  My Title  ", body="  Body that is long enough  ")
        )

        assert post.title == "My Title"
        assert post.body == "Body that is long enough"
        assert post.user_id == author.id
        assert post.deleted is False
        assert post.user.username == "alice"

    async def test_invalid_input(self, author):
        with pytest.raises(ValidationError) as exc_info:
            await services.create_post(None, author.id, PostCreate(title="ab", body="short"))
        assert exc_info.value.errors == [
            "Title must be at least 3 characters long",
            "Body must be at least 10 characters long",
        ]

    async def test_missing_fields(self, author):
        with pytest.raises(ValidationError, match="Title is required"):
            await services.create_post(None, author.id, PostCreate())

    async def test_unknown_author_is_unauthorized(self, database):
        with pytest.raises(AuthenticationError):
            await services.create_post(database, 999, PostCreate(title="Orphan", body="Nobody wrote this post"))

        result = await services.list_posts(database, PostFilters(include_deleted=True))
        assert result.total == 0


@pytest.mark.asyncio
class TestDeletePost:
    """Test delete_post service function."""

    async def test_owner_delete_then_repeat(self, database, author):
        post = await insert_post(database, author.id, "Title", "A body long enough")

        await services.delete_post(database, post.id, author.id)
        stored = await select_post(database, post.id)
        assert stored.deleted is True
        assert stored.deleted_at is not None

        with pytest.raises(GoneError, match="Post has already been deleted"):
            await services.delete_post(database, post.id, author.id)

    async def test_non_owner_is_forbidden(self, database, author, other_user):
        post = await insert_post(database, author.id, "Title", "A body long enough")

        with pytest.raises(ForbiddenError, match="You can only delete your own posts"):
            await services.delete_post(database, post.id, other_user.id)
        assert (await select_post(database, post.id)).deleted is False

    async def test_missing_post_is_not_found(self, database, author):
        with pytest.raises(NotFoundError, match="Post not found"):
            await services.delete_post(database, 999, author.id)


@pytest.mark.asyncio
class TestRecentPosts:
    """Test recent_posts service function."""

    async def test_capped_newest_first_excluding_deleted(self, database, author, other_user):
        for i in range(8):
            owner = author if i % 2 else other_user
            await insert_post(database, owner.id, f"Post {i}", "A body long enough")
        posts = await services.recent_posts(database)
        await services.delete_post(database, posts[0].id, posts[0].user_id)

        posts = await services.recent_posts(database)
        assert len(posts) == 6
        assert [p.title for p in posts] == [f"Post {i}" for i in range(6, 0, -1)]


@pytest.mark.asyncio
class TestAuthentication:
    """Test login, signup and logout."""

    async def test_signup_sets_session(self, database):
        response = Response()
        claims = await services.signup(
            database, UserCreate(name="Leanne", username="bret", email="Bret@Example.com"), response
        )

        assert claims.email == "bret@example.com"
        cookie = response.headers["set-cookie"]
        token = cookie.split(";")[0].split("=", 1)[1]
        assert verify_token(token) == claims

    async def test_signup_conflict_sets_no_cookie(self, database, author):
        response = Response()
        with pytest.raises(ConflictError):
            await services.signup(
                database, UserCreate(name="Alice", username="alice2", email="alice@example.com"), response
            )
        assert "set-cookie" not in response.headers

    async def test_login_existing_user(self, database, author):
        response = Response()
        claims = await services.login(database, UserLogin(email="Alice@Example.com"), response)

        assert claims.id == author.id
        assert claims.username == "alice"
        assert "auth-token=" in response.headers["set-cookie"]

    async def test_login_unknown_email(self, database):
        with pytest.raises(NotFoundError, match="User not found"):
            await services.login(database, UserLogin(email="ghost@example.com"), Response())

    @pytest.mark.parametrize("email,message", [
        (None, "Email is required"),
        ("   ", "Email is required"),
        ("not-an-email", "Invalid email format"),
    ])
    async def test_login_bad_email(self, email, message):
        with pytest.raises(ValidationError, match=message):
            await services.login(None, UserLogin(email=email), Response())

    async def test_logout_clears_cookie(self):
        response = Response()
        services.logout(response)
        assert "Max-Age=0" in response.headers["set-cookie"]

"""
Tests for the demo data seed command.
"""

import httpx
import pytest

from blog_service.crud import list_posts, list_users, select_user_by_email
from blog_service.seed import fetch_seed_data, seed

USERS = [
    {"id": 1, "name": " Leanne Graham ", "username": "Bret ", "email": "Sincere@April.biz"},
    {"id": 2, "name": "Ervin Howell", "username": "Antonette", "email": " Shanna@melissa.tv "},
]

POSTS = [
    {"id": 1, "userId": 1, "title": " sunt aut facere ", "body": "quia et suscipit\nsuscipit recusandae  "},
    {"id": 2, "userId": 1, "title": "qui est esse", "body": "est rerum tempore vitae"},
    {"id": 3, "userId": 2, "title": "ea molestias quasi", "body": "et iusto sed quo iure"},
]


@pytest.mark.asyncio
async def test_seed_inserts_normalized_rows(database):
    created = await seed(database, USERS, POSTS)

    assert created == (2, 3)

    leanne = await select_user_by_email(database, "sincere@april.biz")
    assert leanne.id == 1
    assert leanne.name == "Leanne Graham"
    assert leanne.username == "Bret"
    assert (await select_user_by_email(database, "shanna@melissa.tv")).id == 2

    posts, total = await list_posts(database, skip=0, limit=10)
    assert total == 3
    first = next(p for p in posts if p.id == 1)
    assert first.title == "sunt aut facere"
    assert first.body == "quia et suscipit\nsuscipit recusandae"
    assert first.deleted is False
    assert first.author.username == "Bret"


@pytest.mark.asyncio
async def test_seed_twice_creates_nothing_new(database):
    await seed(database, USERS, POSTS)

    assert await seed(database, USERS, POSTS) == (0, 0)
    assert len(await list_users(database)) == 2
    _, total = await list_posts(database, skip=0, limit=10)
    assert total == 3


@pytest.mark.asyncio
async def test_seed_adds_only_missing_rows(database):
    await seed(database, USERS[:1], POSTS[:1])

    assert await seed(database, USERS, POSTS) == (1, 2)


@pytest.mark.asyncio
async def test_fetch_seed_data():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        if request.url.path == "/users":
            return httpx.Response(200, json=USERS)
        if request.url.path == "/posts":
            return httpx.Response(200, json=POSTS)
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        users, posts = await fetch_seed_data("https://seed.test", client)

    assert users == USERS
    assert posts == POSTS
    assert requested == ["/users", "/posts"]


@pytest.mark.asyncio
async def test_fetch_seed_data_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_seed_data("https://seed.test", client)

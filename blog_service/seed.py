"""
    Seed the database with demo users and posts.

    Pipeline:
        1. Fetch users and posts from a JSONPlaceholder-compatible API
        2. Insert users whose ids are not present yet
        3. Insert posts whose ids are not present yet (idempotent)

    Usage:
        python -m blog_service.seed [--source https://jsonplaceholder.typicode.com]
"""

import argparse
import asyncio

import httpx
from sqlalchemy import select, text

from .config import settings
from .db import Database
from .logger import logger
from .models import User, Post
from .utils import normalize_email

DEFAULT_SOURCE = "https://jsonplaceholder.typicode.com"


async def fetch_seed_data(source: str, client: httpx.AsyncClient) -> tuple[list[dict], list[dict]]:
    """Download the raw users and posts lists."""
    logger.info(f"Fetching users and posts from {source}")
    users_response = await client.get(f"{source}/users")
    users_response.raise_for_status()
    posts_response = await client.get(f"{source}/posts")
    posts_response.raise_for_status()
    return users_response.json(), posts_response.json()


async def seed(database: Database, users: list[dict], posts: list[dict]) -> tuple[int, int]:
    """Insert missing rows keyed by id. Returns (users_created, posts_created)."""
    async with database.session() as session:
        async with session.begin():
            existing_users = set((await session.execute(select(User.id))).scalars().all())
            new_users = [
                User(
                    id=u["id"],
                    name=u["name"].strip(),
                    username=u["username"].strip(),
                    email=normalize_email(u["email"]),
                )
                for u in users
                if u["id"] not in existing_users
            ]
            session.add_all(new_users)
            await session.flush()

            existing_posts = set((await session.execute(select(Post.id))).scalars().all())
            new_posts = [
                Post(
                    id=p["id"],
                    title=p["title"].strip(),
                    body=p["body"].strip(),
                    user_id=p["userId"],
                    deleted=False,
                )
                for p in posts
                if p["id"] not in existing_posts
            ]
            session.add_all(new_posts)
            await session.flush()

            if database.engine.dialect.name == "postgresql":
                # Explicit ids do not advance PostgreSQL sequences
                for table in ("users", "posts"):
                    await session.execute(text(
                        f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                        f"COALESCE((SELECT MAX(id) FROM {table}), 1))"
                    ))

    logger.info(f"Seeding completed: {len(new_users)} users, {len(new_posts)} posts created")
    return len(new_users), len(new_posts)


async def main(source: str) -> None:
    database = Database(settings.DB_URL)
    try:
        if settings.DB_URL.startswith("sqlite"):
            await database.create_all()
        async with httpx.AsyncClient(timeout=30.0) as client:
            users, posts = await fetch_seed_data(source, client)
        await seed(database, users, posts)
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the blog database with demo data.")
    parser.add_argument("--source", default=DEFAULT_SOURCE, help="Base URL serving /users and /posts")
    args = parser.parse_args()
    asyncio.run(main(args.source.rstrip("/")))

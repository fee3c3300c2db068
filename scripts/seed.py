"""Database seeder: demo users (password ``password123``) and their articles."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from app.database import engine, async_session, Base
from app.models import User, Article
from app.services.auth_service import hash_password

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
          "testing", "performance", "security", "caching"]

DEMO_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 5 if small else 50
    num_articles = 100 if small else 5000

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One hash shared by every demo account; bcrypt is deliberately slow.
    password_hash = hash_password(DEMO_PASSWORD)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                email=f"user_{i:04d}@example.com",
                username=f"user_{i:04d}",
                password_hash=password_hash,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            for i in range(batch_start, batch_end):
                topic = random.choice(TOPICS)
                session.add(Article(
                    title=f"Article {i}: Notes on {topic}",
                    description=f"This is the full text of article {i} about {topic}. " * 20,
                    publish_date=datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365)),
                    author_id=random.choice(users).id,
                ))
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Log in as user_0000@example.com / {DEMO_PASSWORD}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

"""
Article service — cache-aside reads and invalidating writes for Article.

Design notes
------------
- Reads go to the cache first and fall back to the database on a miss,
  writing the result back with a fixed TTL (``settings.CACHE_TTL_MS``).
- Cache keys are shared with any other process using the same Redis:

    ``article_<id>``                  single article
    ``articles_list``                 unfiltered list, cleared by every write
    ``articles_list_<json filter>``   one key per filter, in received order

- Writes clear ``article_<id>`` and ``articles_list`` only.  Filtered list
  keys expire by TTL unless ``invalidate_filtered_lists`` is enabled, in
  which case every ``articles_list_*`` key is purged as well.  Filters are
  not canonicalised: ``{"page": 1, "limit": 10}`` and
  ``{"limit": 10, "page": 1}`` are cached separately.
- The author is always loaded through an explicit JOIN
  (``contains_eager``); the relationship itself is ``lazy="raise"``.
- The session and the cache are injected so tests can swap in fakes.
  Writes commit before touching the cache, so an invalidation or a
  repopulated entry never reflects a transaction that later rolls back.
"""
import json
import logging
import math
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from app.config import settings
from app.exceptions import ForbiddenError, NotFoundError
from app.models import Article, User
from app.schemas import ArticleCreate, ArticleUpdate
from app.services.user_service import user_to_dict

logger = logging.getLogger(__name__)

ARTICLE_CACHE_PREFIX = "article_"
LIST_CACHE_KEY = "articles_list"


class CacheStore(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl_ms: int | None = None) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None: ...


# ---------------------------------------------------------------------------
# Cache keys
# ---------------------------------------------------------------------------

def article_cache_key(article_id: str) -> str:
    return f"{ARTICLE_CACHE_PREFIX}{article_id}"


def list_cache_key(filters: dict) -> str:
    """Key for a filtered list: the filter serialised as compact JSON, keys unsorted."""
    # Non-ASCII stays literal so keys match JSON.stringify output.
    encoded = json.dumps(filters, separators=(",", ":"), ensure_ascii=False, default=str)
    return f"{LIST_CACHE_KEY}_{encoded}"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "description": article.description,
        "publish_date": article.publish_date.isoformat() if article.publish_date else None,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "updated_at": article.updated_at.isoformat() if article.updated_at else None,
        "author_id": article.author_id,
        "author": user_to_dict(article.author),
    }


def _parse_date(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ArticleService:
    def __init__(
        self,
        db: AsyncSession,
        cache: CacheStore,
        ttl_ms: int | None = None,
        invalidate_filtered_lists: bool | None = None,
    ) -> None:
        self.db = db
        self.cache = cache
        self.ttl_ms = settings.CACHE_TTL_MS if ttl_ms is None else ttl_ms
        self.invalidate_filtered_lists = (
            settings.CACHE_INVALIDATE_FILTERED_LISTS
            if invalidate_filtered_lists is None
            else invalidate_filtered_lists
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_article(self, article_id: str) -> dict:
        """
        Return the article with its author.  Raises NotFoundError.

        A cache hit is returned as-is without touching the database.
        """
        cache_key = article_cache_key(article_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        q = (
            select(Article)
            .join(Article.author)
            .options(contains_eager(Article.author))
            .where(Article.id == article_id)
            .execution_options(populate_existing=True)
        )
        article = (await self.db.execute(q)).unique().scalar_one_or_none()
        if article is None:
            raise NotFoundError("Article", article_id)

        data = _article_to_dict(article)
        await self.cache.set(cache_key, data, ttl_ms=self.ttl_ms)
        return data

    async def get_articles(self, filters: dict) -> dict:
        """
        Return one page of articles matching *filters*.

        *filters* holds ``page`` and ``limit`` plus any of ``author``,
        ``fromDate``, ``toDate`` (inclusive, on ``publish_date``) and
        ``search``.  Its key order is part of the cache key.
        """
        cache_key = list_cache_key(filters)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        page = filters.get("page", 1)
        limit = filters.get("limit", settings.DEFAULT_PAGE_SIZE)

        conditions = []
        if filters.get("author"):
            conditions.append(Article.author_id == filters["author"])
        from_date = _parse_date(filters.get("fromDate"))
        if from_date is not None:
            conditions.append(Article.publish_date >= from_date)
        to_date = _parse_date(filters.get("toDate"))
        if to_date is not None:
            conditions.append(Article.publish_date <= to_date)
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            conditions.append(
                or_(Article.title.ilike(pattern), Article.description.ilike(pattern))
            )

        count_q = select(func.count()).select_from(Article).where(*conditions)
        total: int = (await self.db.execute(count_q)).scalar_one()

        articles_q = (
            select(Article)
            .join(Article.author)
            .options(contains_eager(Article.author))
            .where(*conditions)
            .order_by(Article.publish_date.desc(), Article.created_at.desc(), Article.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        articles = (await self.db.execute(articles_q)).unique().scalars().all()

        result = {
            "items": [_article_to_dict(a) for a in articles],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        }
        await self.cache.set(cache_key, result, ttl_ms=self.ttl_ms)
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_article(self, data: ArticleCreate, author: User) -> dict:
        """Persist a new article owned by *author* and return it."""
        article = Article(
            title=data.title,
            description=data.description,
            publish_date=data.publish_date,
            author_id=author.id,
        )
        self.db.add(article)
        await self.db.commit()
        logger.info("Article %s created by user %s", article.id, author.id)

        await self.cache.delete(LIST_CACHE_KEY)
        await self._purge_filtered_lists()

        q = (
            select(Article)
            .join(Article.author)
            .options(contains_eager(Article.author))
            .where(Article.id == article.id)
            .execution_options(populate_existing=True)
        )
        return _article_to_dict((await self.db.execute(q)).unique().scalar_one())

    async def update_article(self, article_id: str, data: ArticleUpdate, requester: User) -> dict:
        """
        Apply the fields set in *data* and return the reloaded article.

        Raises NotFoundError, or ForbiddenError when *requester* is not the
        author.  Nothing is written or invalidated on either error.
        """
        article = await self.get_article(article_id)
        self._check_owner(article, requester, "update")

        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if changes:
            await self.db.execute(
                update(Article).where(Article.id == article_id).values(**changes)
            )
            await self.db.commit()
        logger.info("Article %s updated (%s)", article_id, ", ".join(changes) or "no fields")

        await self._invalidate(article_id)
        return await self.get_article(article_id)

    async def delete_article(self, article_id: str, requester: User) -> dict:
        """Hard-delete the article.  Same errors as ``update_article``."""
        article = await self.get_article(article_id)
        self._check_owner(article, requester, "delete")

        await self.db.execute(delete(Article).where(Article.id == article_id))
        await self.db.commit()
        logger.info("Article %s deleted", article_id)

        await self._invalidate(article_id)
        return {"message": "Article successfully deleted"}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_owner(article: dict, requester: User, action: str) -> None:
        if article["author"]["id"] != requester.id:
            logger.info(
                "User %s denied %s of article %s", requester.id, action, article["id"]
            )
            raise ForbiddenError(f"You can only {action} your own articles")

    async def _invalidate(self, article_id: str) -> None:
        await self.cache.delete(article_cache_key(article_id), LIST_CACHE_KEY)
        await self._purge_filtered_lists()

    async def _purge_filtered_lists(self) -> None:
        if self.invalidate_filtered_lists:
            await self.cache.delete_pattern(f"{LIST_CACHE_KEY}_*")

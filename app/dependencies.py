from datetime import datetime

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheManager, cache
from app.config import settings
from app.database import get_db
from app.exceptions import UnauthorizedError
from app.models import User
from app.services import auth_service
from app.services.article_service import ArticleService

bearer_scheme = HTTPBearer(auto_error=False)


class ArticleFilterParams:
    """
    Parses and validates the article list query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(params: ArticleFilterParams = Depends()):
            ...

    Attributes
    ----------
    filters:
        Dict of the recognised parameters in the order they appeared in
        the query string, followed by ``page``/``limit`` defaults when the
        caller omitted them.  This dict is what the article service
        serialises into the list cache key, so ``?page=1&limit=5`` and
        ``?limit=5&page=1`` are cached under different keys.  Unknown
        parameters are dropped.
    """

    def __init__(
        self,
        request: Request,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of items per page.",
        ),
        author: str | None = Query(None, description="Only articles by this user id."),
        fromDate: datetime | None = Query(None, description="Earliest publish date (inclusive)."),
        toDate: datetime | None = Query(None, description="Latest publish date (inclusive)."),
        search: str | None = Query(
            None, min_length=1, description="Substring match on title or description."
        ),
    ) -> None:
        values = {
            "page": page,
            "limit": limit,
            "author": author,
            "fromDate": fromDate.isoformat() if fromDate else None,
            "toDate": toDate.isoformat() if toDate else None,
            "search": search,
        }
        filters: dict = {}
        for name in request.query_params.keys():
            if name in values and values[name] is not None and name not in filters:
                filters[name] = values[name]
        filters.setdefault("page", page)
        filters.setdefault("limit", limit)
        self.filters = filters


def get_cache() -> CacheManager:
    return cache


def get_article_service(
    db: AsyncSession = Depends(get_db),
    cache_store: CacheManager = Depends(get_cache),
) -> ArticleService:
    return ArticleService(db, cache_store)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve ``Authorization: Bearer <token>`` to the calling user (401 otherwise)."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing bearer token")
    return await auth_service.authenticate(db, credentials.credentials)

from fastapi import APIRouter, Depends

from app.dependencies import ArticleFilterParams, get_article_service, get_current_user
from app.models import User
from app.schemas import ArticleCreate, ArticlePage, ArticleResponse, ArticleUpdate, MessageResponse
from app.services.article_service import ArticleService

router = APIRouter(prefix="/articles", tags=["articles"])

@router.get("", response_model=ArticlePage)
async def list_articles(
    params: ArticleFilterParams = Depends(),
    service: ArticleService = Depends(get_article_service),
):
    return await service.get_articles(params.filters)

@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(article_id: str, service: ArticleService = Depends(get_article_service)):
    return await service.get_article(article_id)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreate,
    current_user: User = Depends(get_current_user),
    service: ArticleService = Depends(get_article_service),
):
    return await service.create_article(data, current_user)

@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    data: ArticleUpdate,
    current_user: User = Depends(get_current_user),
    service: ArticleService = Depends(get_article_service),
):
    return await service.update_article(article_id, data, current_user)

@router.delete("/{article_id}", response_model=MessageResponse)
async def delete_article(
    article_id: str,
    current_user: User = Depends(get_current_user),
    service: ArticleService = Depends(get_article_service),
):
    return await service.delete_article(article_id, current_user)

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.core.responses import api_success
from app.models.user import User
from app.routers.deps import get_current_user, parse_payload, read_payload
from app.schemas.post import PostCreate, PostUpdate
from app.services.media import read_image_upload
from app.services.posts import PostService, get_post_service

router = APIRouter(prefix="/api/blogs", tags=["blogs"])


@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    author: str | None = None,
    tag: str | None = None,
    search: str | None = None,
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    result = service.list_posts(page=page, limit=limit, author_id=author, tag=tag, search=search)
    return api_success(status.HTTP_200_OK, "Blogs retrieved", result)


@router.get("/{post_id}")
def get_post(post_id: str, service: PostService = Depends(get_post_service)) -> JSONResponse:
    return api_success(status.HTTP_200_OK, "Blog retrieved", service.get_post(post_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    fields, upload = await read_payload(request)
    payload = parse_payload(PostCreate, fields)
    cover = await run_in_threadpool(read_image_upload, upload)
    post = await run_in_threadpool(service.create_post, current_user, payload, cover)
    return api_success(status.HTTP_201_CREATED, "Blog created successfully", post)


@router.put("/{post_id}")
async def update_post(
    post_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    fields, upload = await read_payload(request)
    patch = parse_payload(PostUpdate, fields)
    cover = await run_in_threadpool(read_image_upload, upload)
    post = await run_in_threadpool(service.update_post, post_id, current_user, patch, cover)
    return api_success(status.HTTP_200_OK, "Blog updated successfully", post)


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    service.delete_post(post_id, current_user)
    return api_success(status.HTTP_200_OK, "Blog deleted successfully")

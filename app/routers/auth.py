from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.core.responses import api_success
from app.models.user import User
from app.routers.deps import get_current_user, parse_payload, read_payload
from app.schemas.auth import LoginRequest, ProfileUpdate, RegisterRequest
from app.services.accounts import AccountService, get_account_service
from app.services.media import read_image_upload

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: Request, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    fields, upload = await read_payload(request)
    payload = parse_payload(RegisterRequest, fields)
    avatar = await run_in_threadpool(read_image_upload, upload)
    user = await run_in_threadpool(service.register, payload, avatar)
    return api_success(status.HTTP_201_CREATED, "User registered successfully", user)


@router.post("/login")
async def login(request: Request, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    fields, _ = await read_payload(request)
    payload = parse_payload(LoginRequest, fields)
    user = await run_in_threadpool(service.login, payload)
    return api_success(status.HTTP_200_OK, "Login successful", user)


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user), service: AccountService = Depends(get_account_service)) -> JSONResponse:
    profile = service.get_profile(current_user.id)
    return api_success(status.HTTP_200_OK, "User profile retrieved", profile)


@router.put("/profile")
async def update_profile(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    fields, upload = await read_payload(request)
    patch = parse_payload(ProfileUpdate, fields)
    avatar = await run_in_threadpool(read_image_upload, upload)
    user = await run_in_threadpool(service.update_profile, current_user.id, patch, avatar)
    return api_success(status.HTTP_200_OK, "Profile updated successfully", user)

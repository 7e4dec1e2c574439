from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from app.core.config import Settings
from app.services.image_service import ImageCompressor
from app.services.thumbnail_service import ThumbnailGenerator
from app.services.video_jobs import VideoJobRunner
from app.storage.local import LocalStorage
from app.storage.registry import JobRegistry


# ============ مزودات الاعتماديات من app.state ============
def get_settings_state(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LocalStorage:
    return request.app.state.storage


def get_image_compressor(request: Request) -> ImageCompressor:
    return request.app.state.image_compressor


def get_thumbnails(request: Request) -> ThumbnailGenerator:
    return request.app.state.thumbnails


def get_video_jobs(request: Request) -> VideoJobRunner:
    return request.app.state.video_jobs


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """التحقق من رمز Bearer عند ضبط admin_token؛ وإلا فالمسارات مفتوحة."""
    expected = request.app.state.settings.admin_token
    if not expected:
        return

    token = ""
    if authorization and authorization.strip().lower().startswith("bearer "):
        token = authorization.strip()[7:].strip()

    if not token or not secrets.compare_digest(token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="رمز الدخول مفقود أو غير صالح.",
            headers={"WWW-Authenticate": "Bearer"},
        )

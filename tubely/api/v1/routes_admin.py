from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from tubely.api.deps import AdminDependency, SettingsDependency
from tubely.media.toolchain import check_media_tools

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])

DEV_TOKEN_LIFETIME = timedelta(hours=1)


class DevTokenRequest(BaseModel):
    user_id: str = Field(..., min_length=1, examples=["user-123"])
    scopes: list[str] = Field(default_factory=list)


class DevTokenResponse(BaseModel):
    token: str
    expires_at: datetime


@router.get("/env-check", response_model=EnvCheckResponse, summary="Report ffmpeg/ffprobe availability")
async def env_check(_: AdminDependency, settings: SettingsDependency) -> EnvCheckResponse:
    return EnvCheckResponse(**check_media_tools(settings.ffmpeg_path, settings.ffprobe_path))


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint a development bearer token")
async def mint_dev_token(payload: DevTokenRequest, settings: SettingsDependency) -> DevTokenResponse:
    if settings.environment_lower not in {"development", "dev"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + DEV_TOKEN_LIFETIME
    claims: dict[str, object] = {
        "sub": payload.user_id,
        "scopes": payload.scopes,
        "iat": issued_at,
        "exp": expires_at,
    }
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    return DevTokenResponse(token=token, expires_at=expires_at)


__all__ = ["router"]

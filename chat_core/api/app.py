"""
FastAPI 应用

两个薄代理接口：
- POST /api/chat: 转发对话请求到模型服务（文本或图片）。
- POST /api/images/upload: 把模型返回的临时图片转存到 ImageKit。

Usage:
    uvicorn chat_core.api.app:app --port 8000
"""

import json
from typing import Callable, List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from chat_core.api.service import proxy_chat, relay_image
from chat_core.config.settings import Settings, settings as default_settings
from chat_core.domain.exceptions import BadRequest, BusinessError, UpstreamFetchError
from chat_core.infrastructure.hosting.imagekit import ImageHost, ImageKitUploader
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_provider
from chat_core.providers.base import ProviderClient


class ProxyMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""


class ChatProxyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ProxyMessage]
    model: str = "primary"
    image_model: str = Field(default="v3", alias="imageModel")
    type: Literal["text", "image"] = "text"
    openai_api_key: Optional[str] = Field(default=None, alias="openaiApiKey")


class ImageUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")


def get_settings() -> Settings:
    return default_settings


def get_image_host(settings: Settings = Depends(get_settings)) -> ImageHost:
    return ImageKitUploader(settings)


def get_provider_factory() -> Callable[[str], ProviderClient]:
    return create_provider


router = APIRouter()


@router.post("/api/chat")
async def chat(
    body: ChatProxyRequest,
    settings: Settings = Depends(get_settings),
    image_host: ImageHost = Depends(get_image_host),
    provider_factory: Callable[[str], ProviderClient] = Depends(get_provider_factory),
):
    api_key = body.openai_api_key or settings.openai_api_key
    if not api_key:
        raise BadRequest("OpenAI API key is required")
    try:
        return await proxy_chat(
            provider_factory(api_key),
            image_host,
            [m.model_dump() for m in body.messages],
            model=body.model,
            image_model=body.image_model,
            type=body.type,
            derive_prompt=settings.derive_image_prompt,
        )
    except BadRequest:
        raise
    except Exception as e:
        logger.error(
            "Chat proxy failed",
            extra={"extra": {"type": body.type, "error_code": getattr(e, "code", e.__class__.__name__), "error": str(e)}},
        )
        raise BusinessError(code="PROXY_ERROR", message="Failed to process the request", http_status=500) from e


@router.post("/api/images/upload")
async def upload_image(
    request: Request,
    image_host: ImageHost = Depends(get_image_host),
):
    # 浏览器端以 text/plain 发送 JSON 字符串，这里不依赖 Content-Type
    body = _parse_upload_body(await request.body())
    try:
        return await relay_image(image_host, body.image_url)
    except (BadRequest, UpstreamFetchError):
        raise
    except Exception as e:
        logger.error(
            "Error uploading image to ImageKit",
            extra={"extra": {"error_code": getattr(e, "code", e.__class__.__name__), "error": str(e)}},
        )
        raise BusinessError(code="UPLOAD_ERROR", message="Failed to upload image", http_status=500) from e


def _parse_upload_body(raw: bytes) -> ImageUploadRequest:
    if not raw.strip():
        return ImageUploadRequest()
    try:
        data = json.loads(raw)
    except ValueError:
        raise BadRequest("Image URL is required")
    if not isinstance(data, dict):
        raise BadRequest("Image URL is required")
    try:
        return ImageUploadRequest.model_validate(data)
    except PydanticValidationError:
        raise BadRequest("Image URL is required")


async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.message, "code": exc.code},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "Rejected malformed request",
        extra={"extra": {"path": request.url.path, "errors": len(exc.errors())}},
    )
    return await business_error_handler(request, BadRequest("Invalid request body"))


def create_app() -> FastAPI:
    application = FastAPI(title="chat_core proxy", docs_url=None, redoc_url=None)
    application.include_router(router)
    application.add_exception_handler(BusinessError, business_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    return application


app = create_app()

"""图片托管。

模型服务返回的图片 URL 只是临时地址，需要把图片转存到 ImageKit：

- ImageKitUploader: 拉取原图字节并上传到 ImageKit（服务端中转接口使用）。
- RelayClient: 调用本项目的 /api/images/upload 中转接口（客户端侧使用）。

两者都实现 ImageHost 协议：relay(image_url) -> 托管后的 URL。
"""

import secrets
import time
from typing import Protocol

import httpx

from chat_core.domain.exceptions import (
    BadRequest,
    NetworkError,
    UpstreamFetchError,
    UpstreamRequestError,
    ValidationError,
)


class ImageHost(Protocol):
    async def relay(self, image_url: str) -> str:
        ...


def make_file_name() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(16)}.jpg"


class ImageKitUploader:
    name = "imagekit"

    def __init__(self, settings):
        self._settings = settings

    async def relay(self, image_url: str) -> str:
        if not image_url:
            raise BadRequest("Image URL is required")
        private_key = getattr(self._settings, "imagekit_private_key", None)
        if not private_key:
            raise ValidationError(
                code="MISSING_IMAGEKIT_CONFIG",
                message="IMAGEKIT_PRIVATE_KEY not set",
                http_status=500,
            )
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                fetched = await client.get(image_url)
                if fetched.status_code >= 400:
                    raise UpstreamFetchError(
                        "Failed to fetch image from upstream",
                        status_code=fetched.status_code,
                    )
                resp = await client.post(
                    self._settings.imagekit_upload_url,
                    auth=(private_key, ""),
                    data={
                        "fileName": make_file_name(),
                        "folder": self._settings.imagekit_folder,
                    },
                    files={"file": ("image.jpg", fetched.content, "image/jpeg")},
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        if resp.status_code >= 400:
            raise UpstreamRequestError(code="UPLOAD_ERROR", message=resp.text, http_status=502)
        url = (resp.json() or {}).get("url")
        if not url:
            raise UpstreamRequestError(code="UPLOAD_ERROR", message="upload response carried no url", http_status=502)
        return url


class RelayClient:
    """通过中转接口转存图片，对应浏览器端的 fetch("/api/images/upload")。"""

    name = "relay"

    def __init__(self, settings, base_url: str | None = None):
        self._settings = settings
        self._base_url = (base_url or settings.relay_base_url).rstrip("/")

    async def relay(self, image_url: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self._base_url}/api/images/upload",
                    json={"imageUrl": image_url},
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        if resp.status_code >= 400:
            raise UpstreamRequestError(code="UPLOAD_ERROR", message=resp.text, http_status=resp.status_code)
        url = (resp.json() or {}).get("url")
        if not url:
            raise UpstreamRequestError(code="UPLOAD_ERROR", message="relay response carried no url", http_status=502)
        return url

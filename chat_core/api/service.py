"""对外 API 服务模块。

提供两个代理接口背后的业务函数，供 FastAPI 路由调用：
- proxy_chat: 转发一次对话（文本非流式，或图片生成+转存）。
- relay_image: 把上游图片转存到图床。
"""

from typing import Any, Dict, List, Optional

from chat_core.domain.exceptions import BadRequest
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.exchange.imaging import IMAGE_CAPTION, generate_hosted_image
from chat_core.infrastructure.hosting.imagekit import ImageHost
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ProviderClient


async def proxy_chat(
    provider: ProviderClient,
    image_host: ImageHost,
    messages: List[Dict[str, str]],
    model: str,
    image_model: str = "v3",
    type: str = "text",
    derive_prompt: bool = True,
) -> Dict[str, Any]:
    """执行一次代理对话。

    Returns:
        文本：{"role": "assistant", "content": ...}
        图片：{"role": "assistant", "content": 说明文字, "imageUrl": ..., "type": "image"}
    """

    chat_messages = [ChatMessage(role=m["role"], content=m.get("content") or "") for m in messages]
    if type == "image":
        prompt = _last_user_content(chat_messages)
        if prompt is None:
            raise BadRequest("A user message is required to generate an image")
        url = await generate_hosted_image(
            provider,
            image_host,
            model=model,
            image_model=image_model,
            messages=chat_messages,
            prompt=prompt,
            derive_prompt=derive_prompt,
        )
        logger.info("Proxied image request", extra={"extra": {"model": model, "image_model": image_model}})
        return {"role": "assistant", "content": IMAGE_CAPTION, "imageUrl": url, "type": "image"}

    result = await provider.chat(ChatRequest(model=model, messages=chat_messages))
    if not result.choices:
        return {"role": "assistant", "content": ""}
    message = result.choices[0].message
    logger.info(
        "Proxied chat request",
        extra={"extra": {"model": model, "message_count": len(chat_messages)}},
    )
    return {"role": message.role, "content": message.content}


async def relay_image(image_host: ImageHost, image_url: Optional[str]) -> Dict[str, str]:
    if not image_url:
        raise BadRequest("Image URL is required")
    url = await image_host.relay(image_url)
    logger.info("Relayed image", extra={"extra": {"hosted": bool(url)}})
    return {"url": url}


def _last_user_content(messages: List[ChatMessage]) -> Optional[str]:
    for m in reversed(messages):
        if m.role == "user" and m.content:
            return m.content
    return None

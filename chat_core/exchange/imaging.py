"""图片交换流程：提炼提示词 -> 生成图片 -> 转存到图床。

会话协调器与 /api/chat 代理接口共用这一流程。
"""

from typing import List

from chat_core.domain.models import ChatMessage, ChatRequest, ImageRequest
from chat_core.domain.tools import GENERATE_IMAGE_TOOL
from chat_core.infrastructure.hosting.imagekit import ImageHost
from chat_core.providers.base import ProviderClient


IMAGE_CAPTION = "Here's your generated image:"


async def derive_image_prompt(
    provider: ProviderClient,
    model: str,
    messages: List[ChatMessage],
    fallback: str,
) -> str:
    """强制模型调用 generate_image，取其 prompt 参数。

    模型没有给出调用或 prompt 为空时，退回用户原始输入。
    """

    result = await provider.chat(
        ChatRequest(
            model=model,
            messages=messages,
            tools=[GENERATE_IMAGE_TOOL],
            tool_choice=GENERATE_IMAGE_TOOL.name,
        )
    )
    for choice in result.choices:
        for call in choice.message.tool_calls or []:
            if call.name == GENERATE_IMAGE_TOOL.name:
                prompt = call.arguments.get("prompt")
                if isinstance(prompt, str) and prompt.strip():
                    return prompt
    return fallback


async def generate_hosted_image(
    provider: ProviderClient,
    image_host: ImageHost,
    *,
    model: str,
    image_model: str,
    messages: List[ChatMessage],
    prompt: str,
    derive_prompt: bool = True,
) -> str:
    """生成一张图片并返回托管后的 URL。"""

    if derive_prompt:
        prompt = await derive_image_prompt(provider, model, messages, prompt)
    image = await provider.generate_image(ImageRequest(prompt=prompt, model=image_model, n=1))
    return await image_host.relay(image.url)

"""Provider 抽象接口。

会话协调层不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：
每个厂商实现一个 ProviderClient，负责把统一请求转成具体 API 请求，
并把响应 JSON 解析为统一结果。
"""

from typing import AsyncIterator, Protocol

from chat_core.domain.models import ChatRequest, ChatResult, ChatStreamChunk, ImageRequest, ImageResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。"""

    name: str

    async def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def chat_stream(self, req: ChatRequest) -> AsyncIterator[ChatStreamChunk]:
        """执行一次流式对话调用，逐步产出增量。"""

        ...

    async def generate_image(self, req: ImageRequest) -> ImageResult:
        ...

"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护逻辑模型与厂商模型的映射 (registry)。
- 提供 OpenAI 兼容接口的具体实现 (openai_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import ProviderClient
from chat_core.providers.openai_client import OpenAIClient


def create_provider(api_key: Optional[str] = None) -> ProviderClient:
    """用给定密钥创建 Provider 实例；未给出时退回配置中的服务端密钥。"""

    return OpenAIClient(settings, api_key=api_key)


__all__ = ["ProviderClient", "OpenAIClient", "create_provider"]

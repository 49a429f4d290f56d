"""Chat Core 顶层包。

该包提供聊天客户端的核心实现，包括会话状态与纯函数变更、
消息交换协调（流式文本与图片生成）、本地状态持久化、
OpenAI 兼容 Provider 适配以及图片中转代理接口。
"""

from chat_core.exchange import ChatSession, MessageExchangeCoordinator

__all__ = ["ChatSession", "MessageExchangeCoordinator"]

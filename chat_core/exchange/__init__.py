"""会话交换层。

- session: 持有 ChatState 快照并在每次变更后通知持久化。
- coordinator: 一次发送/编辑对应的请求编排与流式回写。
- imaging: 图片生成与转存流程。
"""

from chat_core.exchange.coordinator import ERROR_MESSAGE, ExchangeResult, MessageExchangeCoordinator
from chat_core.exchange.imaging import IMAGE_CAPTION
from chat_core.exchange.session import ChatSession

__all__ = [
    "ChatSession",
    "MessageExchangeCoordinator",
    "ExchangeResult",
    "ERROR_MESSAGE",
    "IMAGE_CAPTION",
]

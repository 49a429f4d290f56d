"""与模型服务交互的统一数据模型。

本模块定义了会话协调层与 Provider 之间共享的标准数据结构：

- ChatMessage: 一条发往/来自模型的消息（只有 role 与 content 等公共字段）。
- ChatRequest: 发给 Provider 的完整对话请求。
- ChatResult / ChatStreamChunk: 解析后的非流式结果与流式增量。
- ImageRequest / ImageResult: 图片生成请求与结果。

Provider 适配器（如 OpenAIClient）只依赖这些模型，
并负责在厂商 API 的 JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List

from chat_core.domain.tools import ToolCall, ToolDef


# 消息角色，与 OpenAI 的 role 字段对应
Role = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色。
    - content: 纯文本内容。
    - tool_calls: 模型触发函数调用时，这里保存调用列表。
    """

    role: Role
    content: str
    tool_calls: Optional[List[ToolCall]] = None


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    model 为逻辑模型名（primary/economy），由 registry 映射为真实模型名；
    传入 registry 中不存在的名字时按厂商模型名原样透传。
    """

    model: str
    messages: List[ChatMessage]
    tools: Optional[List[ToolDef]] = None
    # 强制调用的函数名；None 表示由模型自行决定
    tool_choice: Optional[str] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次非流式对话调用的最终结果。"""

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass
class ChatStreamChoice:
    index: int
    delta: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamChunk:
    """流式对话的增量结果，choice.delta 代表本次增量内容。"""

    provider: str
    model: str
    choices: List[ChatStreamChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def delta_text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""


@dataclass
class ImageRequest:
    """图片生成请求。model 为逻辑图片模型名（v2/v3）。"""

    prompt: str
    model: str
    n: int = 1


@dataclass
class ImageResult:
    provider: str
    model: str
    urls: List[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.urls[0] if self.urls else ""

"""会话状态模型。

ChatState 是整个客户端的根状态：会话列表（最新在前）、当前选中的会话
以及用户配置的 API 密钥。所有结构均为不可变 dataclass，状态变更由
reducer 模块生成新的快照。

持久化时使用 camelCase 键（currentChatId、imageModel、createdAt、imageUrl），
与浏览器端写入的 JSON 文档保持同一形状。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

from chat_core.domain.exceptions import SerializationError
from chat_core.domain.models import Role


MessageType = Literal["text", "image"]
ChatModel = Literal["primary", "economy"]
ImageModel = Literal["v2", "v3"]

CHAT_MODELS: Tuple[str, ...] = ("primary", "economy")
IMAGE_MODELS: Tuple[str, ...] = ("v2", "v3")
MESSAGE_TYPES: Tuple[str, ...] = ("text", "image")
ROLES: Tuple[str, ...] = ("system", "user", "assistant")

DEFAULT_TITLE = "New Chat"
DEFAULT_MODEL: ChatModel = "primary"
DEFAULT_IMAGE_MODEL: ImageModel = "v3"


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    id 只在助手占位消息上设置，用于流式增量定位；type 标记该轮交换是
    文本还是图片。
    """

    role: Role
    content: str
    image_url: Optional[str] = None
    id: Optional[str] = None
    type: Optional[MessageType] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        if self.id is not None:
            data["id"] = self.id
        if self.type is not None:
            data["type"] = self.type
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data.get("role")
        if role not in ROLES:
            raise SerializationError(f"invalid message role: {role!r}")
        content = data.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise SerializationError("message content must be a string")
        msg_type = data.get("type")
        if msg_type is not None and msg_type not in MESSAGE_TYPES:
            raise SerializationError(f"invalid message type: {msg_type!r}")
        return cls(
            role=role,
            content=content,
            image_url=data.get("imageUrl"),
            id=data.get("id"),
            type=msg_type,
        )


@dataclass(frozen=True)
class Chat:
    id: str
    title: str
    messages: Tuple[Message, ...]
    model: ChatModel = DEFAULT_MODEL
    image_model: ImageModel = DEFAULT_IMAGE_MODEL
    # 毫秒时间戳
    created_at: int = 0

    def find_message(self, message_id: str) -> Optional[int]:
        for i, msg in enumerate(self.messages):
            if msg.id == message_id:
                return i
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "model": self.model,
            "imageModel": self.image_model,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chat":
        chat_id = data.get("id")
        if not isinstance(chat_id, str) or not chat_id:
            raise SerializationError("chat id is missing")
        raw_messages = data.get("messages")
        if not isinstance(raw_messages, list):
            raise SerializationError(f"chat {chat_id} has no message list")
        messages = tuple(Message.from_dict(m) for m in raw_messages)
        if not messages or messages[0].role != "system":
            raise SerializationError(f"chat {chat_id} does not start with a system message")
        model = data.get("model") or DEFAULT_MODEL
        image_model = data.get("imageModel") or DEFAULT_IMAGE_MODEL
        if model not in CHAT_MODELS or image_model not in IMAGE_MODELS:
            raise SerializationError(f"chat {chat_id} has unknown model settings")
        return cls(
            id=chat_id,
            title=data.get("title") or "",
            messages=messages,
            model=model,
            image_model=image_model,
            created_at=int(data.get("createdAt") or 0),
        )


@dataclass(frozen=True)
class ChatState:
    """客户端根状态。"""

    chats: Tuple[Chat, ...] = field(default_factory=tuple)
    current_chat_id: Optional[str] = None
    api_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chats": [c.to_dict() for c in self.chats],
            "currentChatId": self.current_chat_id,
            "apiKey": self.api_key,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ChatState":
        if not isinstance(data, dict):
            raise SerializationError("state document must be an object")
        raw_chats = data.get("chats") or []
        if not isinstance(raw_chats, list):
            raise SerializationError("chats must be a list")
        chats = tuple(Chat.from_dict(c) for c in raw_chats)
        ids = [c.id for c in chats]
        if len(set(ids)) != len(ids):
            raise SerializationError("duplicate chat ids")
        current = data.get("currentChatId")
        if current not in ids:
            # 指向已删除会话的选中状态视为未选中
            current = None
        return cls(chats=chats, current_chat_id=current, api_key=data.get("apiKey") or None)


EMPTY_STATE = ChatState()

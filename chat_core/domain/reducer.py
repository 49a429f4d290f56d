"""ChatState 的纯函数状态变更。

每个函数接收当前快照并返回新的 ChatState，不修改入参。
调用方（ChatSession）负责用返回值整体替换旧快照。

约束：
- 每个会话第 0 条消息始终是 system 消息，任何操作都不会删除或移动它。
- current_chat_id 要么为空，要么指向 chats 中存在的会话。
- 助手占位消息按 id 定位并原地更新，不会被删除后重新追加。
"""

import time
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

from chat_core.domain.conversation import (
    CHAT_MODELS,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_MODEL,
    DEFAULT_TITLE,
    IMAGE_MODELS,
    MESSAGE_TYPES,
    Chat,
    ChatState,
    Message,
)
from chat_core.domain.exceptions import MissingCredential, NotFound, ValidationError
from chat_core.prompts import load_system_prompt


TITLE_MAX_LENGTH = 30

_PATCH_FIELDS = {"content", "image_url", "type"}


def new_chat_id() -> str:
    return f"c-{uuid4().hex}"


def new_message_id() -> str:
    return f"m-{uuid4().hex}"


def get_chat(state: ChatState, chat_id: Optional[str]) -> Optional[Chat]:
    if chat_id is None:
        return None
    for chat in state.chats:
        if chat.id == chat_id:
            return chat
    return None


def current_chat(state: ChatState) -> Optional[Chat]:
    return get_chat(state, state.current_chat_id)


def _require_chat(state: ChatState, chat_id: str) -> Chat:
    chat = get_chat(state, chat_id)
    if chat is None:
        raise NotFound(f"chat {chat_id} does not exist", chat_id=chat_id)
    return chat


def _map_chat(state: ChatState, chat_id: str, fn: Callable[[Chat], Chat]) -> ChatState:
    """替换指定会话；会话不存在时原样返回。"""
    chats = tuple(fn(c) if c.id == chat_id else c for c in state.chats)
    return replace(state, chats=chats)


def set_api_key(state: ChatState, api_key: Optional[str]) -> ChatState:
    key = (api_key or "").strip() or None
    return replace(state, api_key=key)


def create_chat(
    state: ChatState,
    title: str = DEFAULT_TITLE,
    *,
    set_as_current: bool = True,
    system_prompt: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    image_model: str = DEFAULT_IMAGE_MODEL,
    chat_id: Optional[str] = None,
    created_at: Optional[int] = None,
) -> ChatState:
    """新建会话并放在列表最前面。

    未配置 API 密钥时抛出 MissingCredential，状态不变。
    """

    if not state.api_key:
        raise MissingCredential("API key is required to create a new chat.")
    _check_choice(model, CHAT_MODELS, "model")
    _check_choice(image_model, IMAGE_MODELS, "image model")
    chat = Chat(
        id=chat_id or new_chat_id(),
        title=title,
        messages=(Message(role="system", content=system_prompt or load_system_prompt()),),
        model=model,
        image_model=image_model,
        created_at=created_at if created_at is not None else int(time.time() * 1000),
    )
    if get_chat(state, chat.id) is not None:
        raise ValidationError(code="DUPLICATE_CHAT_ID", message=f"chat {chat.id} already exists")
    return replace(
        state,
        chats=(chat,) + state.chats,
        current_chat_id=chat.id if set_as_current else state.current_chat_id,
    )


def select_chat(state: ChatState, chat_id: str) -> ChatState:
    """选中会话；id 不存在时不做任何改变。"""
    if get_chat(state, chat_id) is None:
        return state
    return replace(state, current_chat_id=chat_id)


def remove_chat(state: ChatState, chat_id: str) -> ChatState:
    chats = tuple(c for c in state.chats if c.id != chat_id)
    current = None if state.current_chat_id == chat_id else state.current_chat_id
    return replace(state, chats=chats, current_chat_id=current)


def append_user_and_placeholder(
    state: ChatState,
    chat_id: str,
    content: str,
    type: str,
    placeholder_id: str,
    insert_at: Optional[int] = None,
    title_max_length: int = TITLE_MAX_LENGTH,
) -> ChatState:
    """插入用户消息及紧随其后的空助手占位消息。

    insert_at 为空时追加到末尾，否则插入到该下标（编辑重发）。
    会话此前只有 system 消息时，用本条内容的前 title_max_length 个字符作为标题。
    """

    _check_choice(type, MESSAGE_TYPES, "message type")
    chat = _require_chat(state, chat_id)
    messages = list(chat.messages)
    position = len(messages) if insert_at is None else insert_at
    if position < 1 or position > len(messages):
        raise ValidationError(
            code="INVALID_INDEX",
            message=f"insert position {position} out of range for chat {chat_id}",
        )
    user = Message(role="user", content=content, type=type)
    placeholder = Message(role="assistant", content="", id=placeholder_id, type=type)
    messages[position:position] = [user, placeholder]
    title = content[:title_max_length] if len(chat.messages) == 1 else chat.title
    return _map_chat(state, chat_id, lambda c: replace(c, messages=tuple(messages), title=title))


def update_assistant_message(
    state: ChatState,
    chat_id: str,
    placeholder_id: str,
    patch: Mapping[str, Any],
) -> ChatState:
    """把 patch（content / image_url / type）合并进指定占位消息。

    会话或占位消息已不存在时（例如流式过程中会话被删除）直接忽略。
    """

    unknown = set(patch) - _PATCH_FIELDS
    if unknown:
        raise ValueError(f"unsupported message fields: {sorted(unknown)}")
    chat = get_chat(state, chat_id)
    if chat is None:
        return state
    index = chat.find_message(placeholder_id)
    if index is None:
        return state
    messages = list(chat.messages)
    messages[index] = replace(messages[index], **patch)
    return _map_chat(state, chat_id, lambda c: replace(c, messages=tuple(messages)))


def truncate_after(state: ChatState, chat_id: str, index: int) -> ChatState:
    """丢弃下标 index 及之后的所有消息，保留前 index 条。"""
    chat = _require_chat(state, chat_id)
    if index < 1 or index > len(chat.messages):
        raise ValidationError(
            code="INVALID_INDEX",
            message=f"cannot truncate chat {chat_id} at {index}",
        )
    return _map_chat(state, chat_id, lambda c: replace(c, messages=c.messages[:index]))


def delete_pair(state: ChatState, chat_id: str, index: int) -> ChatState:
    """删除下标 index 与 index + 1 的两条消息（一轮用户/助手交换）。"""
    chat = _require_chat(state, chat_id)
    if index < 1 or index + 1 >= len(chat.messages):
        raise ValidationError(
            code="INVALID_INDEX",
            message=f"no message pair at {index} in chat {chat_id}",
        )
    return _map_chat(
        state,
        chat_id,
        lambda c: replace(c, messages=c.messages[:index] + c.messages[index + 2:]),
    )


def set_model(state: ChatState, chat_id: str, model: str) -> ChatState:
    _check_choice(model, CHAT_MODELS, "model")
    _require_chat(state, chat_id)
    return _map_chat(state, chat_id, lambda c: replace(c, model=model))


def set_image_model(state: ChatState, chat_id: str, image_model: str) -> ChatState:
    _check_choice(image_model, IMAGE_MODELS, "image model")
    _require_chat(state, chat_id)
    return _map_chat(state, chat_id, lambda c: replace(c, image_model=image_model))


def _check_choice(value: str, allowed, label: str) -> None:
    if value not in allowed:
        raise ValidationError(
            code="VALIDATION_ERROR",
            message=f"unknown {label} {value!r}, expected one of {', '.join(allowed)}",
        )

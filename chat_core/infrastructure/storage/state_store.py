import json
import os
import re
from pathlib import Path
from typing import Literal, Optional, Protocol
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import EMPTY_STATE, ChatState
from chat_core.domain.exceptions import BusinessError, SerializationError, ValidationError
from chat_core.infrastructure.logging.logger import logger


STORAGE_KEY = "chatgpt-client-state"
THEME_KEY = "theme"

Theme = Literal["light", "dark", "system"]
THEMES = ("light", "dark", "system")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class KeyValueStore(Protocol):
    """字符串键值槽，语义与浏览器 localStorage 一致。"""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class FileKeyValueStore(KeyValueStore):
    """每个键对应 root 下的一个文件，写入走临时文件 + os.replace。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = self._root / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e))

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise BusinessError(code="STORE_INVALID_KEY", message=key)
        return self._root / f"{key}.json"


def encode_state(state: ChatState) -> str:
    return json.dumps(state.to_dict(), ensure_ascii=False)


def decode_state(raw: str) -> ChatState:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SerializationError(f"stored state is not valid JSON: {e}")
    try:
        return ChatState.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"stored state has an unexpected shape: {e}")


class StatePersistence:
    """把整个 ChatState 序列化进一个固定键。

    load() 遇到损坏的数据时默认记录错误并退回空状态；
    strict=True 时改为抛出 SerializationError。
    """

    def __init__(self, kv: KeyValueStore, key: str = STORAGE_KEY, strict: bool = False):
        self._kv = kv
        self._key = key
        self._strict = strict

    def load(self) -> ChatState:
        raw = self._kv.get_item(self._key)
        if raw is None:
            return EMPTY_STATE
        try:
            state = decode_state(raw)
        except SerializationError as e:
            if self._strict:
                raise
            logger.error(
                "Discarding corrupt stored state",
                extra={"extra": {"key": self._key, "error": e.message}},
            )
            return EMPTY_STATE
        logger.info(
            "Loaded stored state",
            extra={"extra": {"key": self._key, "chats": len(state.chats)}},
        )
        return state

    def save(self, state: ChatState) -> None:
        self._kv.set_item(self._key, encode_state(state))

    def load_theme(self) -> Theme:
        value = self._kv.get_item(THEME_KEY)
        if value in THEMES:
            return value
        return "system"

    def save_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValidationError(code="VALIDATION_ERROR", message=f"unknown theme {theme!r}")
        self._kv.set_item(THEME_KEY, theme)

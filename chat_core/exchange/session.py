"""会话状态容器。

ChatSession 持有当前 ChatState 快照，所有变更都通过 apply() 以
“旧快照 -> reducer -> 新快照”的方式整体替换，并在每次替换后通知订阅者
（例如 StatePersistence.save）。apply() 是同步的，在单个事件循环内
多个交换交错执行时也不会看到半更新的状态。
"""

from typing import Callable, List, Optional

from chat_core.domain.conversation import EMPTY_STATE, ChatState
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.state_store import StatePersistence


Listener = Callable[[ChatState], None]


class ChatSession:
    def __init__(self, state: ChatState = EMPTY_STATE, persistence: Optional[StatePersistence] = None):
        self._state = state
        self._listeners: List[Listener] = []
        if persistence is not None:
            self.subscribe(persistence.save)

    @classmethod
    def restore(cls, persistence: StatePersistence) -> "ChatSession":
        """从持久化槽恢复状态，之后每次变更都会写回。"""
        return cls(persistence.load(), persistence)

    @property
    def state(self) -> ChatState:
        return self._state

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def apply(self, transition: Callable[..., ChatState], *args, **kwargs) -> ChatState:
        new_state = transition(self._state, *args, **kwargs)
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in self._listeners:
            try:
                listener(new_state)
            except Exception as e:
                # 内存快照已替换；订阅者失败只记录，不回滚也不打断调用方
                logger.error(
                    "State listener failed",
                    extra={
                        "extra": {
                            "listener": getattr(listener, "__qualname__", repr(listener)),
                            "error_code": getattr(e, "code", e.__class__.__name__),
                            "error": str(e),
                        }
                    },
                    exc_info=True,
                )
        return new_state

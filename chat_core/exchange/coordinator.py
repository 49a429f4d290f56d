"""消息交换协调器。

每次发送/编辑对应一次交换：

1. 校验前置条件（已配置密钥、已选中会话）。
2. 立即插入用户消息与空的助手占位消息（乐观更新）。
3. 用插入点之前的历史（只保留 role/content）加上本次输入构造请求。
4. 文本：按到达顺序累积流式增量，并把累计内容写回占位消息；
   图片：生成图片并转存，写入固定说明文字和托管 URL。
5. 第 3-4 步任何失败都把固定错误文案写入占位消息，本轮交换结束，不做重试。

所有对占位消息的更新都按占位消息 id 定位，而不是按下标，
这样其他位置的编辑/删除不会让迟到的更新写错消息。
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4
import logging
import time

from chat_core.config.settings import settings as default_settings
from chat_core.domain.conversation import MESSAGE_TYPES, Chat
from chat_core.domain.exceptions import MissingCredential, NotFound, ValidationError
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.domain.reducer import (
    append_user_and_placeholder,
    delete_pair,
    get_chat,
    new_message_id,
    truncate_after,
    update_assistant_message,
)
from chat_core.exchange.imaging import IMAGE_CAPTION, generate_hosted_image
from chat_core.exchange.session import ChatSession
from chat_core.infrastructure.hosting.imagekit import ImageHost, RelayClient
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_provider
from chat_core.providers.base import ProviderClient


ERROR_MESSAGE = "Sorry, there was an error processing your request. Please try again."


@dataclass
class ExchangeResult:
    chat_id: str
    placeholder_id: str
    ok: bool
    error: Optional[Exception] = None


class MessageExchangeCoordinator:
    def __init__(
        self,
        session: ChatSession,
        provider_factory: Callable[[str], ProviderClient] = create_provider,
        image_host: Optional[ImageHost] = None,
        settings=None,
    ):
        self._session = session
        self._provider_factory = provider_factory
        self._settings = settings or default_settings
        self._image_host = image_host or RelayClient(self._settings)

    async def send_message(
        self,
        content: str,
        type: str = "text",
        *,
        chat_id: Optional[str] = None,
        insert_at: Optional[int] = None,
    ) -> ExchangeResult:
        """发送一条消息并等待本轮交换结束。

        Args:
            content: 用户输入
            type: "text" 或 "image"
            chat_id: 目标会话，默认当前选中的会话
            insert_at: 插入位置，默认追加到末尾

        Raises:
            MissingCredential: 未配置密钥或没有选中会话，此时不会发出任何请求
            NotFound: 指定的会话不存在
            ValidationError: 输入为空或插入位置非法
        """

        if not content or not content.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="Message content is empty")
        chat, api_key = self._resolve(chat_id)

        placeholder_id = new_message_id()
        self._session.apply(
            append_user_and_placeholder,
            chat.id,
            content,
            type,
            placeholder_id,
            insert_at,
            title_max_length=self._settings.title_max_length,
        )
        position = len(chat.messages) if insert_at is None else insert_at
        api_messages = [ChatMessage(role=m.role, content=m.content) for m in chat.messages[:position]]
        api_messages.append(ChatMessage(role="user", content=content))

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "exchange_id": f"ex-{uuid4().hex}",
            "chat_id": chat.id,
            "placeholder_id": placeholder_id,
            "type": type,
        }
        self._log(logging.INFO, "Starting exchange", log_ctx, model=chat.model, message_count=len(api_messages))

        try:
            provider = self._provider_factory(api_key)
            if type == "image":
                await self._run_image(provider, chat, placeholder_id, api_messages, content, log_ctx)
            else:
                await self._run_text(provider, chat, placeholder_id, api_messages, type, log_ctx)
        except Exception as e:
            self._log(
                logging.ERROR,
                "Exchange failed",
                log_ctx,
                error_code=getattr(e, "code", e.__class__.__name__),
                error=str(e),
            )
            self._session.apply(
                update_assistant_message,
                chat.id,
                placeholder_id,
                {"content": ERROR_MESSAGE, "type": type},
            )
            return ExchangeResult(chat_id=chat.id, placeholder_id=placeholder_id, ok=False, error=e)

        self._log(
            logging.INFO,
            "Completed exchange",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return ExchangeResult(chat_id=chat.id, placeholder_id=placeholder_id, ok=True)

    async def edit_message(
        self,
        index: int,
        content: str,
        type: Optional[str] = None,
        *,
        chat_id: Optional[str] = None,
    ) -> ExchangeResult:
        """编辑第 index 条用户消息：丢弃它及之后的全部消息，再在原位置重新发送。"""

        chat, _ = self._resolve(chat_id)
        if index < 1 or index >= len(chat.messages) or chat.messages[index].role != "user":
            raise ValidationError(code="INVALID_INDEX", message=f"message {index} is not a user message")
        if not content or not content.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="Message content is empty")
        msg_type = type or chat.messages[index].type or "text"
        if msg_type not in MESSAGE_TYPES:
            raise ValidationError(code="VALIDATION_ERROR", message=f"unknown message type {msg_type!r}")
        self._session.apply(truncate_after, chat.id, index)
        self._log(logging.INFO, "Truncated chat for edit", {"chat_id": chat.id}, index=index)
        return await self.send_message(content, msg_type, chat_id=chat.id, insert_at=index)

    def delete_exchange(self, index: int, *, chat_id: Optional[str] = None) -> None:
        """删除第 index 条消息及紧随其后的一条，不发出网络请求。"""

        target = chat_id or self._session.state.current_chat_id
        if target is None or get_chat(self._session.state, target) is None:
            raise NotFound(f"chat {target} does not exist", chat_id=target)
        self._session.apply(delete_pair, target, index)

    def _resolve(self, chat_id: Optional[str]) -> tuple[Chat, str]:
        state = self._session.state
        if not state.api_key:
            raise MissingCredential("API key is required to send messages.")
        target = chat_id or state.current_chat_id
        if target is None:
            raise MissingCredential("Select or create a chat before sending messages.")
        chat = get_chat(state, target)
        if chat is None:
            raise NotFound(f"chat {target} does not exist", chat_id=target)
        return chat, state.api_key

    async def _run_text(
        self,
        provider: ProviderClient,
        chat: Chat,
        placeholder_id: str,
        api_messages: List[ChatMessage],
        msg_type: str,
        log_ctx: Dict[str, Any],
    ) -> None:
        streamed = ""
        async for chunk in provider.chat_stream(ChatRequest(model=chat.model, messages=api_messages)):
            streamed += chunk.delta_text
            self._session.apply(
                update_assistant_message,
                chat.id,
                placeholder_id,
                {"content": streamed, "type": msg_type},
            )
            if chunk.usage:
                self._log(
                    logging.INFO,
                    "Token usage",
                    log_ctx,
                    prompt_tokens=chunk.usage.prompt_tokens,
                    completion_tokens=chunk.usage.completion_tokens,
                    total_tokens=chunk.usage.total_tokens,
                )

    async def _run_image(
        self,
        provider: ProviderClient,
        chat: Chat,
        placeholder_id: str,
        api_messages: List[ChatMessage],
        prompt: str,
        log_ctx: Dict[str, Any],
    ) -> None:
        hosted_url = await generate_hosted_image(
            provider,
            self._image_host,
            model=chat.model,
            image_model=chat.image_model,
            messages=api_messages,
            prompt=prompt,
            derive_prompt=self._settings.derive_image_prompt,
        )
        self._log(logging.INFO, "Image hosted", log_ctx, image_model=chat.image_model)
        self._session.apply(
            update_assistant_message,
            chat.id,
            placeholder_id,
            {"content": IMAGE_CAPTION, "image_url": hosted_url, "type": "image"},
        )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

"""OpenAI 兼容 Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest / ImageRequest。
2. 将其转换为 OpenAI HTTP API 的请求格式（chat/completions、images/generations）。
3. 调用 HTTP 接口并把网络/API 异常包装成业务异常。
4. 将响应 JSON 解析为统一的 ChatResult / ChatStreamChunk / ImageResult。

密钥由调用方在构造时传入（用户在客户端里配置的 API 密钥），
不从全局配置读取。
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from chat_core.domain.exceptions import (
    MissingCredential,
    NetworkError,
    RateLimitError,
    UpstreamRequestError,
)
from chat_core.domain.models import (
    ChatChoice,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatStreamChoice,
    ChatStreamChunk,
    ChatUsage,
    ImageRequest,
    ImageResult,
)
from chat_core.domain.tools import ToolCall, ToolDef
from chat_core.providers.registry import (
    ModelConfig,
    build_openai_config,
    resolve_chat_model,
    resolve_image_model,
)


class OpenAIClient:
    """OpenAI 兼容接口的异步客户端。

    - chat: 非流式对话，返回 ChatResult。
    - chat_stream: 流式对话，逐条产出 ChatStreamChunk。
    - generate_image: 生成图片，返回上游给出的临时 URL。
    """

    name = "openai"

    def __init__(self, settings, api_key: Optional[str] = None):
        self._settings = settings
        self._api_key = api_key or getattr(settings, "openai_api_key", None)
        self._config = build_openai_config(settings)

    async def chat(self, req: ChatRequest) -> ChatResult:
        model_cfg = resolve_chat_model(self._config, req.model)
        payload = self._build_payload(req, model_cfg)
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self._config.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        self._raise_for_status(resp.status_code, resp.text)
        return self._parse_response(resp.json(), req)

    async def chat_stream(self, req: ChatRequest) -> AsyncIterator[ChatStreamChunk]:
        """执行一次流式对话调用，按到达顺序 yield 增量。

        流式读取不设读超时，只有建连受 http_timeout 约束。
        """

        model_cfg = resolve_chat_model(self._config, req.model)
        payload = self._build_payload(req, model_cfg)
        payload["stream"] = True
        headers = self._headers()
        timeout = httpx.Timeout(self._settings.http_timeout, read=None)
        try:
            async with httpx.AsyncClient(timeout=timeout, trust_env=False) as client:
                async with client.stream(
                    "POST",
                    f"{self._config.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                ) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        self._raise_for_status(resp.status_code, body.decode("utf-8", errors="replace"))
                    async for line in resp.aiter_lines():
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        yield self._parse_stream_chunk(payload_chunk, req)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)

    async def generate_image(self, req: ImageRequest) -> ImageResult:
        image_cfg = resolve_image_model(self._config, req.model)
        payload = {
            "prompt": req.prompt,
            "model": image_cfg.provider_model,
            "size": image_cfg.size,
            "n": req.n,
        }
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self._config.base_url}/images/generations",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        self._raise_for_status(resp.status_code, resp.text)
        data = resp.json()
        urls = [item.get("url") for item in data.get("data") or [] if item.get("url")]
        if not urls:
            raise UpstreamRequestError(code="API_ERROR", message="image response carried no url", http_status=502)
        return ImageResult(provider=self.name, model=req.model, urls=urls, raw=data)

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            # 配置缺失在发出任何请求之前失败
            raise MissingCredential("OpenAI API key is required")
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _raise_for_status(status_code: int, body: str) -> None:
        if status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="OpenAI rate limit", http_status=429)
        if status_code >= 400:
            raise UpstreamRequestError(code="API_ERROR", message=body, http_status=status_code)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 chat/completions 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            if req.tool_choice:
                payload["tool_choice"] = {"type": "function", "function": {"name": req.tool_choice}}
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            properties[name] = param.schema or {"type": "string"}
            if param.description:
                properties[name] = {**properties[name], "description": param.description}
            if param.required:
                required.append(name)
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        choices: List[ChatChoice] = []
        for i, ch in enumerate(data.get("choices", [])):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(index=i, message=self._build_chat_message(msg), finish_reason=ch.get("finish_reason"))
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
            raw=data,
        )

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        choices: List[ChatStreamChoice] = []
        for i, ch in enumerate(data.get("choices", [])):
            delta_payload = ch.get("delta") or {}
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    delta=self._build_chat_message(delta_payload),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
            raw=data,
        )

    @staticmethod
    def _parse_usage(usage_raw: Optional[dict]) -> Optional[ChatUsage]:
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        """将单条厂商 message 转换为 ChatMessage。

        同时兼容 tool_calls 与旧版 function_call 两种函数调用字段。
        """

        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(payload.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._parse_arguments(func.get("arguments")),
                )
            )
        function_call = payload.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                )
            )
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=payload.get("content") or "",
            tool_calls=tool_calls or None,
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析函数调用的 arguments 字段。

        OpenAI 把 arguments 作为 JSON 字符串返回，解析失败时保留原始字符串到 `_raw`。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}

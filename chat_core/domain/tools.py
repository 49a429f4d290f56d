"""函数调用数据结构定义。

图片对话会强制模型调用 generate_image 函数来提炼提示词，
这里描述暴露给 LLM 的函数 schema（ToolDef / ToolParam）
以及模型返回的调用请求（ToolCall）。
"""

from dataclasses import dataclass
from typing import Dict, Any


@dataclass
class ToolParam:
    """单个函数参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的函数定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]


@dataclass
class ToolCall:
    """模型发起的一次函数调用请求。"""

    id: str
    name: str
    arguments: Dict[str, Any]


GENERATE_IMAGE_TOOL = ToolDef(
    name="generate_image",
    description="Generates an image based on the conversation",
    params={
        "prompt": ToolParam(
            name="prompt",
            description="The prompt for the image generation",
            required=True,
            schema={"type": "string"},
        )
    },
)

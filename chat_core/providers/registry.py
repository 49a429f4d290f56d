"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 对话模型：primary / economy，由配置映射为例如 gpt-4o / gpt-4o-mini。
- 图片模型：v2 / v3，分别对应 dall-e-2 / dall-e-3，并决定生成尺寸。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑对话模型的配置。"""

    logical_name: str
    provider_model: str


@dataclass
class ImageModelConfig:
    logical_name: str
    provider_model: str
    size: str


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]
    image_models: Dict[str, ImageModelConfig]


def build_openai_config(settings) -> ProviderConfig:
    """按当前配置构造 OpenAI 兼容 Provider 的模型表。"""

    return ProviderConfig(
        name="openai",
        base_url=getattr(settings, "openai_base_url", None) or "https://api.openai.com/v1",
        models={
            "primary": ModelConfig(
                logical_name="primary",
                provider_model=getattr(settings, "primary_model", None) or "gpt-4o",
            ),
            "economy": ModelConfig(
                logical_name="economy",
                provider_model=getattr(settings, "economy_model", None) or "gpt-4o-mini",
            ),
        },
        image_models=dict(IMAGE_MODEL_REGISTRY),
    )


IMAGE_MODEL_REGISTRY: Mapping[str, ImageModelConfig] = {
    "v2": ImageModelConfig(logical_name="v2", provider_model="dall-e-2", size="512x512"),
    "v3": ImageModelConfig(logical_name="v3", provider_model="dall-e-3", size="1024x1024"),
}


def resolve_chat_model(cfg: ProviderConfig, name: str) -> ModelConfig:
    """逻辑名查表；未登记的名字视为厂商模型名直接透传。"""

    model_cfg = cfg.models.get(name)
    if model_cfg is not None:
        return model_cfg
    return ModelConfig(logical_name=name, provider_model=name)


def resolve_image_model(cfg: ProviderConfig, name: str) -> ImageModelConfig:
    model_cfg = cfg.image_models.get(name)
    if model_cfg is not None:
        return model_cfg
    for item in cfg.image_models.values():
        if item.provider_model == name:
            return item
    raise KeyError(f"Unknown image model: {name!r}")

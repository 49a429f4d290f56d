"""系统提示词加载工具。

新建会话时，按语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本，
作为会话第 0 条 system 消息。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_system_prompt(locale: str = "en") -> str:
    """根据语言加载默认系统提示词文本（去掉首尾空白）。"""

    fname = PROMPTS_DIR / locale / "system.md"
    return fname.read_text(encoding="utf-8").strip()

"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
用户在界面上填写的 API Key / 模型等偏好不在这里，
而是由 SettingsRepository 持久化（见 infrastructure/storage/settings_store.py）。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("DOC_ASSISTANT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class AppSettings(BaseSettings):
    """进程级配置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI Chat Completions 基础URL",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini Generative Language API 基础URL",
    )
    gemini_temperature: float = Field(default=0.6, ge=0.0, le=2.0, description="Gemini 生成温度")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 文档上下文 ----
    context_char_limit: int = Field(default=6000, ge=1, description="文档上下文最大字符数")
    docs_root: str = Field(
        default_factory=lambda: str(Path.cwd()),
        description="文档根目录，slug 相对于该目录解析",
    )

    # ---- 本地存储与日志 ----
    settings_key: str = Field(default="ih-assistant-settings", description="用户偏好的存储键")
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = AppSettings()

"""配置模块：负责加载和缓存基于环境变量的网盘服务设置。"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 探测项目根目录并加载环境文件，支持通过 ENV_FILE/ENVIRONMENT 定制优先级。
def _detect_base_dir() -> Path:
    """向上遍历目录树，寻找包含 `app` 目录的项目根路径。"""
    current = Path(__file__).resolve()
    for candidate in current.parents:
        if (candidate / "app").is_dir():
            return candidate
    return current.parent


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _load_environment() -> None:
    env_file_override = os.getenv("ENV_FILE")
    if env_file_override:
        candidate = BASE_DIR / env_file_override
        if candidate.exists():
            load_dotenv(candidate, override=True, encoding="utf-8")
        return

    base_env = BASE_DIR / ".env"
    if base_env.exists():
        load_dotenv(base_env, override=False, encoding="utf-8")

    environment = os.getenv("ENVIRONMENT")
    if environment is None and _as_bool(os.getenv("DEBUG")):
        environment = "development"

    if environment:
        candidate_name = environment if environment.startswith(".env") else f".env.{environment}"
        candidate_path = BASE_DIR / candidate_name
        if candidate_path.exists():
            load_dotenv(candidate_path, override=True, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """
    网盘服务运行所需的全部配置项，每个字段都可以通过同名大写环境变量重写。
    节点、用户相关的长度与数量上限也集中在这里，校验逻辑只从此处读取。
    """

    project_name: str = Field(default="Drive API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")

    database_url: str = Field(default="sqlite:///./drive.db", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="drive.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    # 分页与批量请求上限
    results_per_page: int = Field(default=100, alias="RESULTS_PER_PAGE")
    max_params_per_request: int = Field(default=100, alias="MAX_PARAMS_PER_REQUEST")

    # 用户字段约束
    min_user_name_length: int = Field(default=4, alias="MIN_USER_NAME_LENGTH")
    max_user_name_length: int = Field(default=16, alias="MAX_USER_NAME_LENGTH")
    min_user_email_length: int = Field(default=4, alias="MIN_USER_EMAIL_LENGTH")
    max_user_email_length: int = Field(default=75, alias="MAX_USER_EMAIL_LENGTH")
    user_salt_length: int = Field(default=32, alias="USER_SALT_LENGTH")
    user_key_length: int = Field(default=128, alias="USER_KEY_LENGTH")

    # 节点字段约束
    max_lock_client_length: int = Field(default=32, alias="MAX_LOCK_CLIENT_LENGTH")
    max_node_name_length: int = Field(default=255, alias="MAX_NODE_NAME_LENGTH")
    max_node_tags: int = Field(default=5, alias="MAX_NODE_TAGS")
    max_node_tag_length: int = Field(default=16, alias="MAX_NODE_TAG_LENGTH")
    max_node_permissions: int = Field(default=10, alias="MAX_NODE_PERMISSIONS")
    max_node_contents: int = Field(default=255, alias="MAX_NODE_CONTENTS")
    max_node_text_length_bytes: int = Field(default=10240, alias="MAX_NODE_TEXT_LENGTH_BYTES")
    max_searchable_tags: int = Field(default=10, alias="MAX_SEARCHABLE_TAGS")

    model_config = SettingsConfigDict(extra="ignore")

    @property
    def sql_database_url(self) -> str:
        """返回 SQLAlchemy 连接串；相对路径的 SQLite 文件落在项目根目录下。"""
        prefix = "sqlite:///"
        url = self.database_url
        if url.startswith(prefix) and not url.startswith(prefix + "/") and ":memory:" not in url:
            return prefix + str(self._resolve_path(url[len(prefix):]))
        return url

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量。"""
    return Settings()

"""
配置管理模块

使用 Pydantic Settings 管理环境变量配置
"""

from typing import List, Literal, Optional
from urllib.parse import quote_plus
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# 在所有配置类之前加载 .env 到 os.environ
load_dotenv()


class AppSettings(BaseSettings):
    """应用基础配置"""

    app_name: str = Field(default="ad-work-order", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    app_env: Literal["development", "staging", "production"] = Field(
        default="production", alias="APP_ENV"
    )
    api_key: Optional[str] = Field(default=None, alias="API_KEY")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default="*", alias="API_CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def cors_origin_list(self) -> List[str]:
        """解析 CORS 域名列表"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class DatabaseSettings(BaseSettings):
    """数据库配置（生产环境 MySQL，测试可用 DATABASE_URL 指向 SQLite）"""

    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    mysql_host: str = Field(default="localhost", alias="MYSQL_HOST")
    mysql_port: int = Field(default=3306, alias="MYSQL_PORT")
    mysql_user: str = Field(default="root", alias="MYSQL_USER")
    mysql_password: str = Field(default="", alias="MYSQL_PASSWORD")
    mysql_database: str = Field(default="ad_work_order", alias="MYSQL_DATABASE")
    mysql_charset: str = Field(default="utf8mb4", alias="MYSQL_CHARSET")
    mysql_connection_timeout: int = Field(default=30, alias="MYSQL_CONNECTION_TIMEOUT")
    db_echo: bool = Field(default=False, alias="DB_ECHO")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_create_tables: bool = Field(default=True, alias="DB_CREATE_TABLES")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def url(self) -> str:
        """SQLAlchemy 连接串，DATABASE_URL 优先"""
        if self.database_url:
            return self.database_url
        return (
            f"mysql+mysqlconnector://{quote_plus(self.mysql_user)}:"
            f"{quote_plus(self.mysql_password)}@{self.mysql_host}:{self.mysql_port}/"
            f"{self.mysql_database}?charset={self.mysql_charset}"
            f"&connection_timeout={self.mysql_connection_timeout}"
        )


class OpenAPISettings(BaseSettings):
    """第三方广告平台开放接口配置"""

    open_api_url: str = Field(
        default="https://test-ua-gw.tec-develop.cn/uni-agency", alias="OPEN_API_URL"
    )
    access_token: str = Field(default="", alias="ACCESS_TOKEN_SECRET")
    open_api_timeout: float = Field(default=30.0, alias="OPEN_API_TIMEOUT")
    gateway_mode: Literal["http", "mock"] = Field(default="http", alias="GATEWAY_MODE")
    # 第三方回调令牌，为空时回退 API_KEY
    callback_secret: str = Field(default="", alias="CALLBACK_SECRET")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class OSSSettings(BaseSettings):
    """阿里云 OSS 配置"""

    aliyun_oss_access_key_id: str = Field(default="", alias="ALIYUN_OSS_ACCESS_KEY_ID")
    aliyun_oss_access_key_secret: str = Field(default="", alias="ALIYUN_OSS_ACCESS_KEY_SECRET")
    aliyun_oss_endpoint: str = Field(
        default="https://oss-cn-hangzhou.aliyuncs.com", alias="ALIYUN_OSS_ENDPOINT"
    )
    aliyun_oss_bucket_name: str = Field(default="", alias="ALIYUN_OSS_BUCKET_NAME")
    oss_upload_dir: str = Field(default="workorder", alias="OSS_UPLOAD_DIR")
    oss_max_file_size: int = Field(default=50, alias="OSS_MAX_FILE_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class LogSettings(BaseSettings):
    """日志配置"""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default="logs/app.log", alias="LOG_FILE")
    log_format: Literal["json", "text"] = Field(default="json", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class WorkflowSettings(BaseSettings):
    """工单流程配置"""

    validation_permissive_mode: bool = Field(
        default=False, alias="VALIDATION_PERMISSIVE_MODE"
    )
    promotion_links_max_length: int = Field(
        default=1800, alias="PROMOTION_LINKS_MAX_LENGTH"
    )
    reviewer_roles: str = Field(default="ADMIN,SUPER_ADMIN", alias="REVIEWER_ROLES")
    max_page_size: int = Field(default=250, alias="MAX_PAGE_SIZE")
    dictionary_url: Optional[str] = Field(default=None, alias="DICTIONARY_URL")
    dictionary_timeout: float = Field(default=5.0, alias="DICTIONARY_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("reviewer_roles")
    @classmethod
    def normalize_reviewer_roles(cls, v: str) -> str:
        """统一审核角色为大写"""
        return ",".join(role.strip().upper() for role in v.split(",") if role.strip())

    @property
    def reviewer_role_list(self) -> List[str]:
        """审核角色列表"""
        return [role for role in self.reviewer_roles.split(",") if role]


class Settings:
    """全局配置管理器"""

    def __init__(self):
        self.app = AppSettings()
        self.database = DatabaseSettings()
        self.open_api = OpenAPISettings()
        self.oss = OSSSettings()
        self.log = LogSettings()
        self.workflow = WorkflowSettings()


# 全局配置实例
settings = Settings()

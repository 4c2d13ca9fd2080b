"""ClientConfig -- 客户端配置加载

从环境变量加载配置，未设置时使用 QA 环境默认值。
"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

DEFAULT_API_URL = "https://api.qa.agrirouter.farm"
DEFAULT_TIMEOUT_S = 30


class ClientConfig(BaseModel):
    """agrirouter 客户端配置

    环境变量:
        AGRIROUTER_API_URL: API 基础地址
        AGRIROUTER_ACCESS_TOKEN: OAuth2 access token（作为 Bearer 发送）
        AGRIROUTER_TIMEOUT_S: 请求/建立连接超时（秒）
    """

    api_url: str = Field(default=DEFAULT_API_URL, description="agrirouter API 基础地址")
    access_token: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth2 access token，为空时不发送 Authorization 头",
    )
    timeout_s: int = Field(
        default=DEFAULT_TIMEOUT_S,
        ge=1,
        description="请求超时（秒），事件流读取不受此限制",
    )
    user_agent: str = Field(
        default="agrirouter-sdk-python/0.1.0",
        description="User-Agent 请求头",
    )

    def default_headers(self) -> dict[str, str]:
        """构建默认请求头"""
        headers = {"User-Agent": self.user_agent}
        token = self.access_token.get_secret_value()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers


def load_client_config() -> ClientConfig:
    """从环境变量加载客户端配置

    环境变量映射:
        AGRIROUTER_API_URL -> api_url
        AGRIROUTER_ACCESS_TOKEN -> access_token
        AGRIROUTER_TIMEOUT_S -> timeout_s（非法值记录 warning 并使用默认值）

    Returns:
        ClientConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("AGRIROUTER_API_URL"):
        kwargs["api_url"] = val

    if val := os.environ.get("AGRIROUTER_ACCESS_TOKEN"):
        kwargs["access_token"] = SecretStr(val)

    if val := os.environ.get("AGRIROUTER_TIMEOUT_S"):
        try:
            timeout_s = int(val)
        except ValueError:
            timeout_s = 0
        if timeout_s >= 1:
            kwargs["timeout_s"] = timeout_s
        else:
            log.warning(
                "invalid_timeout_config",
                env_var="AGRIROUTER_TIMEOUT_S",
                value=val,
                fallback=DEFAULT_TIMEOUT_S,
            )

    return ClientConfig(**kwargs)

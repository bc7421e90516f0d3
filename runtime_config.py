"""运行时配置服务客户端：从服务端拉取统一下发的 AI 默认配置。"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

import config
from ai_config import AIConfig, DEFAULT_AI_CONFIG, merge_layers

logger = logging.getLogger(__name__)


class RuntimeConfigError(Exception):
    """运行时配置不可用（未配置地址、网络错误、返回内容无效）。"""


class RuntimeConfigService:
    def __init__(
        self,
        url: str = config.RUNTIME_CONFIG_URL,
        timeout: float = config.RUNTIME_CONFIG_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def get_runtime_ai_config(self) -> AIConfig:
        """GET 运行时配置。缺失字段用编译期默认值补齐，任何失败抛 RuntimeConfigError。"""
        if not self.url:
            raise RuntimeConfigError("未设置 RUNTIME_CONFIG_URL")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            raise RuntimeConfigError(f"请求超时: {self.url}") from e
        except httpx.HTTPError as e:
            raise RuntimeConfigError(f"请求失败: {e}") from e

        if response.status_code != 200:
            raise RuntimeConfigError(f"HTTP {response.status_code}: {response.text[:300]}")

        try:
            data = response.json()
        except ValueError as e:
            raise RuntimeConfigError("返回内容不是 JSON") from e
        if not isinstance(data, dict):
            raise RuntimeConfigError("返回内容不是 JSON 对象")

        try:
            runtime = AIConfig.model_validate(merge_layers([DEFAULT_AI_CONFIG.to_dict(), data]))
        except ValidationError as e:
            raise RuntimeConfigError(f"运行时配置字段无效: {e.error_count()} 项") from e

        logger.debug("运行时 AI 配置: model=%s, api_url=%s", runtime.model_name, runtime.api_url)
        return runtime

"""
AI 解读配置：默认配置、提示词模板，以及默认 / 运行时 / 用户自定义三层配置的合并与保存。

合并顺序（后者覆盖前者，按字段浅合并）：
  编译期默认配置 < 服务端运行时配置 < 本地保存的用户配置
所有公开操作都不向外抛异常，出错时降级为可用的默认值。
"""
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

import config
from kv_store import JsonFileKVStore

logger = logging.getLogger(__name__)


class AIConfig(BaseModel):
    """调用 AI 服务所需的完整参数。序列化时使用 camelCase 字段名。"""

    # 严格类型：true 不会被当成 1，"5000" 不会被当成整数
    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=(), strict=True)

    api_key: str = Field(alias="apiKey")
    api_url: str = Field(alias="apiUrl")
    model_name: str = Field(alias="modelName")
    max_tokens: int = Field(alias="maxTokens", gt=0)
    # 整数温度值（如 1）仍然接受
    temperature: float = Field(ge=0, le=2, strict=False)
    # 毫秒
    timeout: int = Field(gt=0)
    stream: bool

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# snake_case -> camelCase，两种写法的键都接受
_FIELD_ALIASES = {name: f.alias or name for name, f in AIConfig.model_fields.items()}


class AnalysisType(str, Enum):
    BAZI = "bazi"
    ZIWEI = "ziwei"
    YIJING = "yijing"
    QIMEN = "qimen"


PLACEHOLDER = "{analysisContent}"

PROMPT_TEMPLATES: Mapping[AnalysisType, str] = MappingProxyType({
    AnalysisType.BAZI: """你是一位专业的八字命理大师，请对以下八字分析结果进行深度解读和补充说明。

请从以下几个方面进行解读：
1. 命格特点的深层含义
2. 五行平衡对人生的具体影响
3. 大运流年的关键转折点
4. 实用的人生建议和注意事项
5. 现代生活中的应用指导

请用通俗易懂的语言，结合现代生活实际，给出具有指导意义的解读。

八字分析结果：
{analysisContent}

请提供详细的AI解读：""",

    AnalysisType.ZIWEI: """你是一位资深的紫微斗数专家，请对以下紫微斗数分析结果进行专业解读。

请重点分析：
1. 命宫主星的性格特质解析
2. 十二宫位的相互影响
3. 大限小限的运势变化
4. 桃花、财帛、事业等重点宫位分析
5. 现实生活中的应用建议

请结合现代社会背景，提供实用的人生指导。

紫微斗数分析结果：
{analysisContent}

请提供专业的AI解读：""",

    AnalysisType.YIJING: """你是一位精通易经的占卜大师，请对以下易经占卜结果进行深入解读。

请从以下角度分析：
1. 卦象的深层寓意
2. 爻辞的具体指导意义
3. 变卦的发展趋势
4. 针对问题的具体建议
5. 行动时机和注意事项

请用现代语言解释古典智慧，提供切实可行的指导。

易经占卜结果：
{analysisContent}

请提供智慧的AI解读：""",

    AnalysisType.QIMEN: """你是一位精通奇门遁甲的预测大师，请对以下奇门遁甲分析结果进行专业解读。

请重点分析：
1. 奇门盘局的整体格局特点
2. 用神落宫的吉凶分析
3. 九星八门八神的组合意义
4. 格局对事情发展的具体影响
5. 最佳行动时机和策略建议
6. 需要注意的不利因素

请结合现代实际情况，提供具有指导价值的预测分析。

奇门遁甲分析结果：
{analysisContent}

请提供专业的AI解读：""",
})


# ----- 默认配置 -----
def _env_str(environ: Mapping[str, str], name: str, default: str) -> str:
    return environ.get(name) or default


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(environ: Mapping[str, str], name: str, default: float, low: float, high: float) -> float:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    # NaN 不满足任何比较
    return value if low <= value <= high else default


def build_default_config(environ: Mapping[str, str]) -> AIConfig:
    """从环境变量构建默认配置。数值解析失败或越界时使用字面默认值，不抛异常。"""
    return AIConfig(
        api_key=_env_str(environ, "AI_API_KEY", ""),
        api_url=_env_str(environ, "AI_API_URL", ""),
        model_name=_env_str(environ, "AI_MODEL_NAME", config.DEFAULT_MODEL_NAME),
        max_tokens=_env_int(environ, "AI_MAX_TOKENS", config.DEFAULT_MAX_TOKENS),
        temperature=_env_float(environ, "AI_TEMPERATURE", config.DEFAULT_TEMPERATURE, 0.0, 2.0),
        timeout=_env_int(environ, "AI_TIMEOUT", config.DEFAULT_TIMEOUT_MS),
        # 只有字面值 "false" 才关闭流式
        stream=environ.get("AI_STREAM") != "false",
    )


DEFAULT_AI_CONFIG = build_default_config(os.environ)


def get_default_config() -> AIConfig:
    return DEFAULT_AI_CONFIG


def merge_layers(layers: Iterable[Optional[Mapping[str, Any]]]) -> dict:
    """按顺序浅合并多层配置，后面的层覆盖前面的同名字段。None 层跳过。"""
    out: dict = {}
    for layer in layers:
        if layer is None:
            continue
        for k, v in layer.items():
            out[_FIELD_ALIASES.get(k, k)] = v
    return out


def validate_config(ai_config: AIConfig) -> bool:
    """apiKey、apiUrl、modelName 均非空才算可用。"""
    return bool(ai_config.api_key and ai_config.api_url and ai_config.model_name)


def get_prompt_template(analysis_type: Any = None) -> str:
    """获取提示词模板，未知类型回退到八字模板。"""
    try:
        key = AnalysisType(analysis_type)
    except (ValueError, TypeError):
        key = AnalysisType.BAZI
    return PROMPT_TEMPLATES[key]


def render_prompt(analysis_type: Any, analysis_content: str) -> str:
    return get_prompt_template(analysis_type).replace(PLACEHOLDER, analysis_content)


def mask_secret(s: str, left: int = 4, right: int = 4) -> str:
    if not s:
        return ""
    if len(s) <= left + right:
        return "*" * len(s)
    return s[:left] + "*" * (len(s) - left - right) + s[-right:]


# ----- 配置读取与保存 -----
@dataclass
class ConfigResult:
    """一次配置解析的结果：最终配置、实际生效的层，以及被跳过的层的原因。"""

    config: AIConfig
    layers: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AIConfigStore:
    def __init__(self, kv_store, runtime_service=None, defaults: Optional[AIConfig] = None, key: str = config.AI_CONFIG_KEY):
        self.kv_store = kv_store
        self.runtime_service = runtime_service
        self.defaults = defaults or DEFAULT_AI_CONFIG
        self.key = key

    def _read_saved(self) -> tuple[Optional[dict], Optional[str]]:
        """读取本地保存的用户配置，返回 (配置, 错误说明)。"""
        try:
            raw = self.kv_store.get(self.key)
        except Exception as e:
            logger.warning("读取本地 AI 配置失败: %s", e)
            return None, f"读取本地配置失败: {e}"
        if raw is None:
            return None, None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("本地 AI 配置解析失败，使用默认配置: %s", e)
            return None, f"本地配置不是合法 JSON: {e}"
        if data is None:
            return None, None
        if not isinstance(data, dict):
            logger.warning("本地 AI 配置不是对象，使用默认配置")
            return None, "本地配置不是 JSON 对象"
        return data, None

    def _apply_saved(self, base: AIConfig, base_layer: str) -> ConfigResult:
        saved, error = self._read_saved()
        if saved is None:
            return ConfigResult(base, [base_layer], error)
        try:
            merged = AIConfig.model_validate(merge_layers([base.to_dict(), saved]))
        except ValidationError as e:
            logger.warning("本地 AI 配置字段无效，已忽略: %s", e.errors(include_url=False))
            return ConfigResult(base, [base_layer], "本地配置字段无效")
        return ConfigResult(merged, [base_layer, "saved"])

    def load_config(self) -> ConfigResult:
        return self._apply_saved(self.defaults, "default")

    def get_config(self) -> AIConfig:
        """默认配置 + 本地用户配置。用户配置缺失或损坏时返回默认配置。"""
        return self.load_config().config

    async def load_config_async(self) -> ConfigResult:
        if self.runtime_service is None:
            return self.load_config()
        try:
            runtime = await self.runtime_service.get_runtime_ai_config()
        except Exception as e:
            # 只降级一次，不重试
            logger.error("获取运行时 AI 配置失败，回退到本地配置: %s", e)
            local = self.load_config()
            errors = [f"运行时配置不可用: {e}"]
            if local.error:
                errors.append(local.error)
            return ConfigResult(local.config, local.layers, "; ".join(errors))
        return self._apply_saved(runtime, "runtime")

    async def get_config_async(self) -> AIConfig:
        """运行时配置 + 本地用户配置；运行时配置获取失败时等同 get_config()。"""
        return (await self.load_config_async()).config

    async def save_config(self, partial: Mapping[str, Any] | BaseModel) -> bool:
        """
        把 partial 合并到当前生效配置上，整体写入本地存储（覆盖旧值）。
        失败只记日志，返回 False。
        """
        try:
            if isinstance(partial, BaseModel):
                partial = partial.model_dump(by_alias=True, exclude_unset=True)
            updates = {k: v for k, v in dict(partial).items() if v is not None}
            current = await self.get_config_async()
            new_config = AIConfig.model_validate(merge_layers([current.to_dict(), updates]))
            self.kv_store.set(self.key, json.dumps(new_config.to_dict(), ensure_ascii=False))
        except Exception as e:
            logger.warning("保存 AI 配置失败: %s", e)
            return False
        logger.info(
            "AI 配置已保存: model=%s, api_url=%s, api_key=%s",
            new_config.model_name, new_config.api_url, mask_secret(new_config.api_key),
        )
        return True


# ----- 模块级默认实例 -----
_store: Optional[AIConfigStore] = None


def get_store() -> AIConfigStore:
    """默认实例：JSON 文件存储 + 环境变量指定的运行时配置服务。"""
    global _store
    if _store is None:
        from runtime_config import RuntimeConfigService

        _store = AIConfigStore(
            JsonFileKVStore(config.KV_STORE_PATH),
            RuntimeConfigService(config.RUNTIME_CONFIG_URL, timeout=config.RUNTIME_CONFIG_TIMEOUT),
        )
    return _store


def get_config() -> AIConfig:
    return get_store().get_config()


async def get_config_async() -> AIConfig:
    return await get_store().get_config_async()


async def save_config(partial: Mapping[str, Any] | BaseModel) -> bool:
    return await get_store().save_config(partial)

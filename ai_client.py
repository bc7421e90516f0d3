"""AI 解读客户端：按分析类型套用提示词模板，调用大模型（DashScope）生成解读。"""
import logging
from typing import Any

from dashscope import Generation
from dashscope.api_entities.dashscope_response import GenerationResponse

from ai_config import AIConfig, mask_secret, render_prompt, validate_config

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "你是一位精通中国传统命理与术数的解读专家，回答需条理清晰、贴近现代生活。"


def _call(ai_config: AIConfig, messages: list[dict]) -> str:
    """调用大模型。stream 时用增量流式输出，只拼接最终 content。"""
    kwargs = {
        "model": ai_config.model_name,
        "messages": messages,
        "api_key": ai_config.api_key,
        "max_tokens": ai_config.max_tokens,
        "temperature": ai_config.temperature,
        "result_format": "message",
        # 毫秒 -> 秒
        "request_timeout": ai_config.timeout / 1000,
    }
    if ai_config.api_url:
        # 按请求传入服务地址，不改动 dashscope 的全局设置
        kwargs["base_address"] = ai_config.api_url
    logger.info(
        "AI 解读请求: model=%s, api_key=%s, stream=%s",
        ai_config.model_name, mask_secret(ai_config.api_key), ai_config.stream,
    )

    if ai_config.stream:
        kwargs["stream"] = True
        kwargs["incremental_output"] = True
        completion = Generation.call(**kwargs)
        answer_content = ""
        for chunk in completion:
            if chunk.status_code != 200:
                raise RuntimeError(f"API 错误: {chunk.code} {chunk.message}")
            if chunk.output and chunk.output.choices:
                msg = chunk.output.choices[0].message
                if msg and msg.content:
                    answer_content += msg.content
        return answer_content.strip()

    resp: GenerationResponse = Generation.call(**kwargs)
    if resp.status_code != 200:
        raise RuntimeError(f"API 错误: {resp.code} {resp.message}")

    output = resp.output
    if not output or not output.choices:
        raise RuntimeError("API 返回空")

    text = output.choices[0].message.content or ""
    return text.strip()


def interpret(analysis_type: Any, analysis_content: str, ai_config: AIConfig) -> str:
    """
    对排盘/占卜分析结果做 AI 解读。
    配置不完整或分析内容为空时抛 ValueError，模型调用失败抛 RuntimeError。
    """
    if not validate_config(ai_config):
        raise ValueError("AI 配置不完整：请设置 apiKey、apiUrl 和 modelName")
    if not analysis_content or not analysis_content.strip():
        raise ValueError("分析内容为空")

    prompt = render_prompt(analysis_type, analysis_content.strip())
    return _call(
        ai_config,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    )

"""FastAPI 主入口：AI 解读配置、提示词模板与解读接口。"""
import logging
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

import ai_client
import ai_config
import config

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="命理 AI 解读配置服务")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

ai_store = ai_config.get_store()

logger.info(
    "默认 AI 配置: model=%s, api_url=%s, api_key=%s, runtime_url=%s",
    ai_config.DEFAULT_AI_CONFIG.model_name,
    ai_config.DEFAULT_AI_CONFIG.api_url,
    ai_config.mask_secret(ai_config.DEFAULT_AI_CONFIG.api_key),
    config.RUNTIME_CONFIG_URL or "-",
)


# ----- 请求体 -----
class UpdateAIConfigReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=(), strict=True)

    api_key: Optional[str] = Field(None, alias="apiKey")
    api_url: Optional[str] = Field(None, alias="apiUrl")
    model_name: Optional[str] = Field(None, alias="modelName")
    max_tokens: Optional[int] = Field(None, alias="maxTokens")
    temperature: Optional[float] = Field(None, strict=False)
    timeout: Optional[int] = None
    stream: Optional[bool] = None


class InterpretReq(BaseModel):
    analysis_type: str = "bazi"
    analysis_content: str


# ----- 路由 -----
@app.get("/api/runtime/ai-config")
def get_runtime_ai_config_api():
    """服务端下发的默认配置，供运行时配置服务拉取。"""
    return ai_config.get_default_config().to_dict()


@app.get("/api/ai-config")
async def get_ai_config_api():
    result = await ai_store.load_config_async()
    return {
        "config": result.config.to_dict(),
        "layers": result.layers,
        "error": result.error,
        "valid": ai_config.validate_config(result.config),
    }


@app.put("/api/ai-config")
async def update_ai_config_api(req: UpdateAIConfigReq):
    d = {k: v for k, v in req.model_dump(by_alias=True).items() if v is not None}
    saved = await ai_store.save_config(d)
    current = await ai_store.get_config_async()
    return {"saved": saved, "config": current.to_dict()}


@app.post("/api/ai-config/validate")
def validate_ai_config_api(req: ai_config.AIConfig):
    return {"valid": ai_config.validate_config(req)}


@app.get("/api/prompts")
def list_prompts_api():
    return {t.value: ai_config.get_prompt_template(t) for t in ai_config.AnalysisType}


@app.get("/api/prompts/{analysis_type}")
def get_prompt_api(analysis_type: str):
    return {"template": ai_config.get_prompt_template(analysis_type)}


@app.post("/api/interpret")
async def interpret_api(req: InterpretReq):
    """对分析结果做 AI 解读：取当前生效配置，套模板后调用模型。"""
    cfg = await ai_store.get_config_async()
    try:
        content = await run_in_threadpool(ai_client.interpret, req.analysis_type, req.analysis_content, cfg)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except RuntimeError as e:
        raise HTTPException(500, str(e))
    return {"analysis_type": req.analysis_type, "content": content}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)

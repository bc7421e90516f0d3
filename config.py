"""配置：AI 解读默认参数、运行时配置服务地址、存储路径。"""
import os

# AI 服务默认配置的字面默认值（环境变量解析见 ai_config.build_default_config）
DEFAULT_MODEL_NAME = "GLM-4.5"
DEFAULT_MAX_TOKENS = 50000
DEFAULT_TEMPERATURE = 0.6
# 毫秒
DEFAULT_TIMEOUT_MS = 120000

# 服务端下发的运行时 AI 配置（留空表示不可用，直接走本地配置）
RUNTIME_CONFIG_URL = os.getenv("RUNTIME_CONFIG_URL", "")
try:
    RUNTIME_CONFIG_TIMEOUT = float(os.getenv("RUNTIME_CONFIG_TIMEOUT", "10"))
except ValueError:
    RUNTIME_CONFIG_TIMEOUT = 10.0

# 用户自定义配置在 KV 存储中的键
AI_CONFIG_KEY = "ai-config"

# 存储路径
DATA_DIR = os.getenv("AI_CONFIG_DATA_DIR") or os.path.join(os.path.dirname(__file__), "data")
KV_STORE_PATH = os.path.join(DATA_DIR, "kv_store.json")

# 日志与服务
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
try:
    PORT = int(os.getenv("PORT", "29147"))
except ValueError:
    PORT = 29147

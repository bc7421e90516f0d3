"""本地 KV 存储：字符串键值，持久化为单个 JSON 文件。"""
import json
import logging
from pathlib import Path
from typing import Optional

import config

logger = logging.getLogger(__name__)


class MemoryKVStore:
    """内存实现，进程内有效。"""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKVStore:
    """
    文件实现：所有键值存于一个 JSON 对象文件。
    - 文件不存在视为空
    - 文件损坏时 get 抛出异常，由调用方决定是否降级
    - set 整体重写文件，后写者覆盖先写者，不加锁
    """

    def __init__(self, path: str | Path = config.KV_STORE_PATH):
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"KV 文件格式错误: {self.path}")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    def set(self, key: str, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            data = self._read_all()
        except (ValueError, OSError) as e:
            # 旧文件损坏时直接覆盖
            logger.warning("KV 文件不可读，将被覆盖: %s (%s)", self.path, e)
            data = {}
        data[key] = value
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

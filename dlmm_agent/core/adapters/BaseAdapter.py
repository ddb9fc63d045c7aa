from __future__ import annotations

from abc import ABC

from loguru import logger


class BaseAdapter(ABC):
    adapter_type: str | None = None

    def __init__(self, name: str):
        self.name = name
        self.logger = logger.bind(adapter=self.__class__.__name__)

    async def close(self) -> None:
        pass

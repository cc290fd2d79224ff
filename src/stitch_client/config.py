from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .batch import BatchConfig
from .queue import DEFAULT_CAPACITY

DEFAULT_URL = "https://api.stitchdata.com/v2/import/push"
HTTP_CONNECT_TIMEOUT = 60 * 2  # seconds


class ClientConfig(BaseSettings):
    """Immutable client settings.

    Values come from keyword arguments first, then ``STITCH_*`` environment
    variables, then a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="STITCH_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    url: str = DEFAULT_URL
    client_id: int
    token: str
    namespace: str
    table_name: Optional[str] = None
    key_names: Optional[List[str]] = None

    max_batch_bytes: int = Field(4_000_000, gt=0)
    max_batch_records: int = Field(10_000, gt=0)
    max_flush_interval_millis: int = Field(60_000, gt=0)
    queue_capacity: int = Field(DEFAULT_CAPACITY, gt=0)
    connect_timeout: float = Field(HTTP_CONNECT_TIMEOUT, gt=0)

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            max_records=self.max_batch_records,
            max_bytes=self.max_batch_bytes,
            max_ms=self.max_flush_interval_millis,
        )


@lru_cache()
def get_config() -> ClientConfig:
    return ClientConfig()

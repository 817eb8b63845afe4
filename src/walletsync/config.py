from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    rpc_url: str = "http://localhost:8545"
    watched_address: str = ""
    db_path: str = "walletsync.sqlite"
    rpc_rate_per_second: float = 5.0
    rpc_timeout: float = 30.0
    block_lookahead: int = 1  # concurrent block fetches per window
    max_blocks_per_cycle: Optional[int] = None
    initial_watermark: int = 0  # first cycle starts at initial_watermark + 1
    debug: bool = False

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"

    class Config:
        env_file = ".env"


settings = Settings()

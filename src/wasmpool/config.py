import os
from typing import Optional

from pydantic import BaseModel, Field


# Helper functions for parsing environment variables
def get_str_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)

def get_int_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default

def get_optional_int_env(key: str) -> Optional[int]:
    value = os.environ.get(key, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None

def get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key, str(default)).lower()
    return value == "true"


# Default factory functions
def default_pool_limit() -> int:
    return get_int_env("WASMPOOL_LIMIT", 0)

def default_memory_limit_pages() -> int:
    return get_int_env("WASMPOOL_MEMORY_LIMIT_PAGES", 256)

def default_consume_fuel() -> bool:
    return get_bool_env("WASMPOOL_CONSUME_FUEL", False)

def default_fuel() -> Optional[int]:
    return get_optional_int_env("WASMPOOL_FUEL")

def default_wasi() -> bool:
    return get_bool_env("WASMPOOL_WASI", True)

def default_log_level() -> str:
    return get_str_env("LOG_LEVEL", "INFO")

def default_log_dir() -> str:
    return get_str_env("LOG_DIR", "logs")

def default_max_size_mb() -> int:
    return get_int_env("LOG_MAX_SIZE_MB", 10)

def default_backup_count() -> int:
    return get_int_env("LOG_BACKUP_COUNT", 5)

def default_use_color() -> bool:
    return get_bool_env("LOG_USE_COLOR", True)

def default_log_to_file() -> bool:
    return get_bool_env("LOG_TO_FILE", False)


class PoolConfig(BaseModel):
    """Module pool configuration."""
    limit: int = Field(default_factory=default_pool_limit)
    fuel: Optional[int] = Field(default_factory=default_fuel)


class RuntimeConfig(BaseModel):
    """WebAssembly engine configuration."""
    memory_limit_pages: int = Field(default_factory=default_memory_limit_pages)
    consume_fuel: bool = Field(default_factory=default_consume_fuel)
    wasi: bool = Field(default_factory=default_wasi)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default_factory=default_log_level)
    log_dir: str = Field(default_factory=default_log_dir)
    max_size_mb: int = Field(default_factory=default_max_size_mb)
    backup_count: int = Field(default_factory=default_backup_count)
    use_color: bool = Field(default_factory=default_use_color)
    log_to_file: bool = Field(default_factory=default_log_to_file)


class AppConfig(BaseModel):
    """Application configuration."""
    pool: PoolConfig = Field(default_factory=PoolConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Create a singleton config instance
config = AppConfig()

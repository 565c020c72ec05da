"""Configuration settings for the Bitvia explorer API."""

from typing import List, Optional, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


PREVOUT_SOURCES = ("indexer", "node")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class APISettings(BaseSettings):
    """API configuration settings."""

    # API Configuration
    api_title: str = Field(default="Bitvia Explorer API", description="API title")
    api_description: str = Field(default="Read-only Bitcoin explorer API over a full node and an Electrum indexer", description="API description")
    api_version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")

    # Node RPC Configuration
    rpc_url: str = Field(default="http://127.0.0.1:8332", description="Bitcoin Core RPC URL")
    rpc_user: str = Field(default="", description="Bitcoin Core RPC username")
    rpc_password: str = Field(default="", description="Bitcoin Core RPC password")
    rpc_timeout: float = Field(default=15.0, gt=0, description="RPC timeout in seconds")

    # Indexer Configuration
    electrs_addr: str = Field(default="127.0.0.1:50001", description="Electrum indexer host:port")
    indexer_timeout: float = Field(default=20.0, gt=0, description="Indexer call timeout in seconds")
    indexer_workers: int = Field(default=8, ge=1, description="Threads running blocking indexer calls")

    # Resolution Configuration
    default_resolve: int = Field(default=20, ge=0, description="Inputs resolved when ?resolve is absent")
    resolve_cap: int = Field(default=100, ge=1, description="Hard cap on resolved inputs per transaction")
    prevout_source: str = Field(default="indexer", description="Prevout source for /api/tx (indexer|node)")

    # Pagination Configuration
    history_default_limit: int = Field(default=25, ge=1, le=200, description="Default address history page size")
    block_default_limit: int = Field(default=20, ge=1, le=200, description="Default block txid page size")

    # Security Configuration
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")
    cors_methods: List[str] = Field(default=["GET"], description="CORS allowed methods")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    access_log: bool = Field(default=True, description="Enable access logging")

    # Monitoring Configuration
    enable_metrics: bool = Field(default=True, description="Enable Prometheus metrics")
    metrics_path: str = Field(default="/metrics", description="Metrics endpoint path")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "BITVIA_"

    @field_validator('electrs_addr')
    @classmethod
    def validate_electrs_addr(cls, v):
        """Validate the indexer address is host:port."""
        host, sep, port = v.rpartition(':')
        if not sep or not host or not port.isdigit():
            raise ValueError("electrs_addr must be host:port")
        return v

    @field_validator('prevout_source')
    @classmethod
    def validate_prevout_source(cls, v):
        """Validate the prevout source name."""
        v = v.lower()
        if v not in PREVOUT_SOURCES:
            raise ValueError(f"prevout_source must be one of {PREVOUT_SOURCES}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate logging level name."""
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}")
        return v

    @property
    def electrs_endpoint(self) -> Tuple[str, int]:
        """Indexer address split into host and port."""
        host, _, port = self.electrs_addr.rpartition(':')
        return host, int(port)

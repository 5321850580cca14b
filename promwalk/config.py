"""Configuration models using Pydantic for validation."""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import os


class TargetConfig(BaseModel):
    """A metrics endpoint (or file) to scrape."""
    name: str
    url: str
    # Used only when the transport does not report a content type
    data_format: Optional[Literal["text", "binary"]] = None
    authorization: Optional[str] = None
    timeout_s: float = Field(default=10.0, gt=0)


class SelfMetricsConfig(BaseModel):
    """Self-monitoring exporter configuration."""
    enabled: bool = True
    port: int = 9109
    bind_address: str = "0.0.0.0"
    prefix: str = "promwalk_"


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    scrape_interval_s: int = Field(default=15, gt=0)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    control_api_port: int = 8081


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    self_metrics: SelfMetricsConfig = Field(default_factory=SelfMetricsConfig)
    targets: List[TargetConfig]

    @field_validator('targets')
    @classmethod
    def validate_targets(cls, v):
        """Validate target configurations."""
        if not v:
            raise ValueError("At least one target must be defined")

        names = [t.name for t in v]
        if len(names) != len(set(names)):
            raise ValueError("Target names must be unique")

        return v

    def get_target(self, name: str) -> Optional[TargetConfig]:
        for target in self.targets:
            if target.name == name:
                return target
        return None


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    if env_interval := os.getenv('SCRAPE_INTERVAL_S'):
        raw_config.setdefault('global', {})['scrape_interval_s'] = env_interval

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

"""Configuration management for platenest."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PLATENEST_",
        extra="ignore",
    )

    # File naming
    record_file_name: str = Field(default="parts.csv", description="Per-job part record file")
    summary_file_name: str = Field(default="all_parts.csv", description="Combined catalog file")
    batch_summary_file_name: str = Field(
        default="batch_nest_summary.txt", description="Batch nesting summary file"
    )
    thickness_file_prefix: str = Field(default="thickness_", description="Consolidated drawing prefix")
    nested_suffix: str = Field(default="_nested", description="Suffix for nested output drawings")
    drawing_extension: str = Field(default=".dxf", description="Drawing file extension")
    plate_block_prefix: str = Field(default="P_", description="Prefix marking nestable plate blocks")

    # Output
    output_dir: Optional[Path] = Field(
        default=None, description="Where combined files go (defaults to the main folder)"
    )

    # Sheet nesting (mm)
    default_sheet_width: float = Field(default=3000.0, description="Default stock sheet width")
    default_sheet_height: float = Field(default=1500.0, description="Default stock sheet height")
    sheet_margin: float = Field(default=5.0, description="Clearance from sheet edges")
    part_gap: float = Field(default=5.0, description="Spacing between adjacent plates")
    sheet_gap: float = Field(default=50.0, description="Visual spacing between sheet rectangles")
    sheet_label_height: float = Field(default=15.0, description="SHEET n label height")
    sheet_label_offset: float = Field(default=20.0, description="SHEET n label distance below sheet top")

    # Consolidated drawing layout (mm)
    text_height: float = Field(default=20.0, description="Label text height")
    text_width_factor: float = Field(default=0.6, description="Character width per unit text height")
    label_gap: float = Field(default=5.0, description="Vertical gap between plate and labels")
    column_margin: float = Field(default=50.0, description="Horizontal gap between plate columns")
    color_seed: Optional[int] = Field(default=None, description="Seed for plate colors")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log output format (text or json)")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Settings) -> None:
    """Override global settings."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop the configured settings so the next call reloads the environment."""
    global _settings
    _settings = None

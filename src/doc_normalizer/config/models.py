"""
Pydantic models for document normalizer configuration.

Defines the option schema for a normalization run, the geometry and contrast
tunables of the individual stages, and logging settings, with validation and
defaults.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class OutputFormat(str, Enum):
    """Encodings the pipeline can produce."""
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"


class ContourConfig(BaseModel):
    """Configuration for the edge-density page boundary heuristic."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    edge_density_ratio: float = Field(
        default=0.04,
        gt=0.0,
        lt=1.0,
        description="Fraction of a row (column) that must be edge pixels to count as a boundary"
    )
    scan_start_ratio: float = Field(
        default=0.01,
        ge=0.0,
        lt=0.5,
        description="Distance from the image edge where the inward scan starts"
    )
    scan_limit_ratio: float = Field(
        default=0.45,
        gt=0.0,
        lt=0.5,
        description="Distance from the image edge where the inward scan gives up"
    )
    min_area_ratio: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Minimum page area as a fraction of the image"
    )
    max_area_ratio: float = Field(
        default=0.97,
        ge=0.0,
        le=1.0,
        description="Maximum page area as a fraction of the image"
    )
    min_side_ratio: float = Field(
        default=0.12,
        ge=0.0,
        le=1.0,
        description="Minimum page width (height) as a fraction of the image width (height)"
    )
    min_aspect_ratio: float = Field(
        default=0.25,
        gt=0.0,
        description="Minimum width/height ratio of the page"
    )
    max_aspect_ratio: float = Field(
        default=4.0,
        gt=0.0,
        description="Maximum width/height ratio of the page"
    )

    @model_validator(mode="after")
    def validate_ranges(self) -> "ContourConfig":
        """Validate that paired bounds are ordered."""
        if self.scan_start_ratio >= self.scan_limit_ratio:
            raise ValueError("scan_start_ratio must be less than scan_limit_ratio")
        if self.min_area_ratio > self.max_area_ratio:
            raise ValueError("min_area_ratio must not exceed max_area_ratio")
        if self.min_aspect_ratio > self.max_aspect_ratio:
            raise ValueError("min_aspect_ratio must not exceed max_aspect_ratio")
        return self


class ContrastConfig(BaseModel):
    """Configuration for percentile contrast stretching."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    low_percentile: float = Field(
        default=1.0,
        ge=0.0,
        lt=50.0,
        description="Luminance percentile mapped to 0"
    )
    high_percentile: float = Field(
        default=99.0,
        gt=50.0,
        le=100.0,
        description="Luminance percentile mapped to 255"
    )
    max_range: int = Field(
        default=200,
        ge=0,
        le=255,
        description="Images whose percentile range exceeds this are left untouched"
    )


class NormalizationOptions(BaseModel):
    """Options for a single normalization run."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    detection_max_dimension: int = Field(
        default=640,
        ge=16,
        description="Longer side of the downscaled copy used for page detection"
    )
    output_max_dimension: int = Field(
        default=2048,
        ge=1,
        description="Longer side limit of the encoded output"
    )
    output_quality: float = Field(
        default=0.92,
        gt=0.0,
        le=1.0,
        description="Encoder quality for lossy formats (0-1]"
    )
    output_format: OutputFormat = Field(
        default=OutputFormat.WEBP,
        description="Output encoding"
    )
    crop_margin_ratio: float = Field(
        default=0.08,
        ge=0.0,
        le=0.5,
        description="Margin added around the detected page, as a fraction of its size"
    )
    adaptive_threshold_block_radius: int = Field(
        default=7,
        ge=1,
        description="Radius r of the (2r+1)x(2r+1) local mean window"
    )
    adaptive_threshold_offset: float = Field(
        default=8.0,
        description="Offset C subtracted from the local mean"
    )
    canny_low_ratio: float = Field(
        default=0.04,
        gt=0.0,
        le=1.0,
        description="Weak edge threshold as a fraction of the maximum gradient"
    )
    canny_high_ratio: float = Field(
        default=0.12,
        gt=0.0,
        le=1.0,
        description="Strong edge threshold as a fraction of the maximum gradient"
    )
    contour: ContourConfig = Field(
        default_factory=ContourConfig,
        description="Page boundary heuristic configuration"
    )
    contrast: ContrastConfig = Field(
        default_factory=ContrastConfig,
        description="Contrast stretching configuration"
    )
    save_debug_images: bool = Field(
        default=False,
        description="Keep intermediate stage images on the result"
    )

    @field_validator("output_format", mode="before")
    @classmethod
    def normalize_format_name(cls, v):
        """Accept common spellings such as 'JPG' or '.webp'."""
        if isinstance(v, str):
            v = v.lower().lstrip(".")
            if v == "jpg":
                v = "jpeg"
        return v

    @model_validator(mode="after")
    def validate_canny_ratios(self) -> "NormalizationOptions":
        """Validate that the weak threshold does not exceed the strong one."""
        if self.canny_low_ratio > self.canny_high_ratio:
            raise ValueError("canny_low_ratio must not exceed canny_high_ratio")
        return self

    @property
    def format_name(self) -> str:
        return OutputFormat(self.output_format).value


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Base logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path"
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich console output"
    )
    format_style: str = Field(
        default="detailed",
        pattern="^(simple|detailed|minimal)$",
        description="Logging format style"
    )


class Config(BaseModel):
    """Main configuration model for the document normalizer."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    normalization: NormalizationOptions = Field(
        default_factory=NormalizationOptions,
        description="Normalization options"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration"
    )

    # Meta configuration
    version: str = Field(
        default="1.0.0",
        description="Configuration version"
    )
    description: Optional[str] = Field(
        default=None,
        description="Configuration description"
    )

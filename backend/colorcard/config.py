"""
Color Card Configuration
Manages environment variables and defaults for extraction, layout and export.
"""
import os
from typing import Optional


class Config:
    """Configuration class for the color card service."""

    # Upload limits
    MAX_FILE_MB: int = int(os.environ.get("COLORCARD_MAX_FILE_MB", "10"))
    MAX_NAME_LENGTH: int = int(os.environ.get("COLORCARD_MAX_NAME_LENGTH", "64"))

    # Color extraction
    EXTRACT_MAX_EDGE: int = int(os.environ.get("COLORCARD_EXTRACT_MAX_EDGE", "200"))
    SAMPLE_STRIDE: int = int(os.environ.get("COLORCARD_SAMPLE_STRIDE", "10"))

    # Compositing
    PIXEL_RATIO: int = int(os.environ.get("COLORCARD_PIXEL_RATIO", "2"))
    EXPORT_SUPERSAMPLED: bool = bool(int(os.environ.get("COLORCARD_EXPORT_SUPERSAMPLED", "0")))
    LOGO_PATH: Optional[str] = os.environ.get("COLORCARD_LOGO_PATH")
    FONT_PATH: Optional[str] = os.environ.get("COLORCARD_FONT_PATH")

    # Readiness gate timings (milliseconds)
    GATE_SETTLE_DELAY_MS: int = int(os.environ.get("COLORCARD_GATE_SETTLE_DELAY_MS", "500"))
    GATE_POLL_INTERVAL_MS: int = int(os.environ.get("COLORCARD_GATE_POLL_INTERVAL_MS", "100"))
    GATE_POLL_ATTEMPTS: int = int(os.environ.get("COLORCARD_GATE_POLL_ATTEMPTS", "10"))
    GATE_MAX_WAIT_MS: int = int(os.environ.get("COLORCARD_GATE_MAX_WAIT_MS", "10000"))

    # Sessions
    MAX_SESSIONS: int = int(os.environ.get("COLORCARD_MAX_SESSIONS", "256"))

    # Logging
    LOG_LEVEL: str = os.environ.get("COLORCARD_LOG_LEVEL", "INFO")

    # CORS settings
    ALLOWED_ORIGINS: str = os.environ.get(
        "COLORCARD_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:3001"
    )

    @classmethod
    def max_file_bytes(cls) -> int:
        """Upload size ceiling in bytes."""
        return cls.MAX_FILE_MB * 1024 * 1024

    @classmethod
    def validate_pixel_ratio(cls, ratio: int) -> bool:
        """Validate supersampling pixel ratio."""
        return 1 <= ratio <= 4

    @classmethod
    def validate_stride(cls, stride: int) -> bool:
        """Validate the sampling stride."""
        return 1 <= stride <= 100

    @classmethod
    def validate_gate_timings(cls) -> bool:
        """The settle delay has to fit inside the overall wait."""
        return 0 <= cls.GATE_SETTLE_DELAY_MS <= cls.GATE_MAX_WAIT_MS and cls.GATE_POLL_ATTEMPTS >= 0

    @classmethod
    def validate(cls) -> bool:
        """Check every numeric setting the card pipeline depends on."""
        return (
            cls.validate_pixel_ratio(cls.PIXEL_RATIO)
            and cls.validate_stride(cls.SAMPLE_STRIDE)
            and cls.validate_gate_timings()
            and cls.EXTRACT_MAX_EDGE > 0
        )


# Global config instance
config = Config()

"""Redis protocol parsing, command packing, pipelines, scripts, and geo and stream helpers."""

__version__ = "0.1.0"
__all__ = ["protocol", "pipeline", "script", "geo", "streams"]
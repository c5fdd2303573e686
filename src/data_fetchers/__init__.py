"""Data fetcher exports."""

from .pbp_fetcher import (
    PBP_COLUMNS,
    PbpProviderError,
    load_pbp_csv,
    load_pbp_data,
    save_pbp_csv,
)

__all__ = [
    "PBP_COLUMNS",
    "PbpProviderError",
    "load_pbp_csv",
    "load_pbp_data",
    "save_pbp_csv",
]

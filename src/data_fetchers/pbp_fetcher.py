"""
Play-by-play loaders for the garbage-time analysis.

Season event logs come from nflverse through nfl_data_py. A local CSV export of the
same columns can be used instead for offline runs.
"""

import os
import time
from typing import Iterable, Optional

import pandas as pd


# nflverse columns the analysis reads; everything else is dropped at download time
PBP_COLUMNS = [
    'game_id', 'season', 'season_type', 'week', 'posteam', 'play_type',
    'receiver_player_id', 'receiver_player_name',
    'rusher_player_id', 'rusher_player_name',
    'complete_pass', 'receiving_yards', 'rushing_yards',
    'pass_touchdown', 'rush_touchdown', 'wp',
]

# First season nflverse publishes play-by-play for
FIRST_PBP_SEASON = 1999


class PbpProviderError(RuntimeError):
    """Raised when the play-by-play log cannot be fetched or parsed."""


def load_pbp_data(
    season: int,
    columns: Optional[Iterable[str]] = None,
    cache: bool = False,
    verbose: bool = False
) -> pd.DataFrame:
    """
    Fetch one season of nflverse play-by-play using nfl_data_py.

    Args:
        season: Season year (e.g. 2024)
        columns: Columns to request (default: PBP_COLUMNS)
        cache: If True, read from nfl_data_py's local cache
        verbose: If True, print progress messages

    Returns:
        DataFrame with one row per play

    Raises:
        PbpProviderError: if nfl_data_py is unavailable or the download fails
    """
    season = _validate_season(season)
    columns = list(columns) if columns is not None else list(PBP_COLUMNS)

    try:
        import nfl_data_py as nfl
    except ImportError as e:
        raise PbpProviderError(
            "nfl_data_py is required to download play-by-play data. "
            "Install it with `pip install nfl_data_py` or pass a local CSV."
        ) from e

    if verbose:
        print(f"\nFetching play-by-play data for {season}...")
    start_time = time.time()

    try:
        pbp = nfl.import_pbp_data(
            [season],
            columns=columns,
            include_participation=False,
            downcast=False,
            cache=cache
        )
    except Exception as e:
        raise PbpProviderError(f"Failed to fetch play-by-play data for {season}: {e}") from e

    if not isinstance(pbp, pd.DataFrame):
        raise PbpProviderError(f"Unexpected play-by-play payload for {season}: {type(pbp).__name__}")

    if verbose:
        elapsed = time.time() - start_time
        print(f"  ✓ Loaded {len(pbp):,} plays from {season} ({elapsed:.1f}s)")

    return pbp


def load_pbp_csv(filepath: str, verbose: bool = False) -> pd.DataFrame:
    """
    Load a play-by-play CSV previously exported from nflverse.

    Raises:
        FileNotFoundError: if the file does not exist
        PbpProviderError: if the file cannot be parsed
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"{filepath} not found. Export a season with --save-pbp first.")

    try:
        pbp = pd.read_csv(filepath, low_memory=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise PbpProviderError(f"Could not parse play-by-play CSV {filepath}: {e}") from e

    if verbose:
        print(f"  ✓ Loaded {len(pbp):,} plays from {filepath}")

    return pbp


def save_pbp_csv(pbp: pd.DataFrame, filepath: str, verbose: bool = False) -> str:
    """Write a play-by-play frame to CSV so later runs can skip the download."""
    output_dir = os.path.dirname(os.path.abspath(filepath))
    os.makedirs(output_dir, exist_ok=True)
    pbp.to_csv(filepath, index=False)
    if verbose:
        print(f"  ✓ Saved {len(pbp):,} plays to {filepath}")
    return filepath


def _validate_season(season) -> int:
    if isinstance(season, bool) or not isinstance(season, int):
        raise TypeError(f"season must be an int. Got: {type(season)}")
    if season < FIRST_PBP_SEASON:
        raise ValueError(f"Play-by-play data starts in {FIRST_PBP_SEASON}. Got: {season}")
    return season

"""
Command-line runner for the garbage-time fantasy share analysis.

Examples:
    garbage-time --season 2024
    garbage-time --csv data/raw/pbp/pbp_2024.csv --min-targets 40 --chart garbage_time.png
"""

import argparse
import sys
from typing import List, Optional

from analysis.garbage_time_analyzer import GarbageTimeAnalyzer, GarbageTimeResult
from data_fetchers.pbp_fetcher import (
    PbpProviderError,
    load_pbp_csv,
    load_pbp_data,
    save_pbp_csv,
)


REPORT_COLUMNS = {
    "rank": "Rank",
    "player_name": "Player",
    "team": "Team",
    "total_fantasy_points": "Total Pts",
    "garbage_fantasy_points": "GT Pts",
    "total_targets": "Targets",
    "garbage_targets": "GT Tgts",
    "garbage_time_pct": "GT %",
}


def print_report(result: GarbageTimeResult, top_n: int = 15) -> None:
    """Print the ranked list, summary statistics and data-quality counts."""
    settings = result.settings
    season = settings.get("season")
    cutoff = settings.get("wp_cutoff", 0.05)

    print("\n" + "=" * 70)
    print(f"Garbage-Time Fantasy Share: {season}")
    print("=" * 70)
    print(f"Garbage time: win probability < {cutoff:.0%} or > {1 - cutoff:.0%}")
    print(
        f"Qualifiers: >= {settings.get('min_fantasy_points', 0):g} PPR points "
        f"and >= {settings.get('min_targets', 0)} targets"
    )

    quality = result.data_quality
    print(f"\nPlays read: {quality.total_plays:,}  |  Player events: {quality.player_events:,}")
    if quality.coerced_points:
        print(f"  ⚠ {quality.coerced_points:,} events scored 0 because of missing fields")
    if quality.missing_win_probability:
        print(f"  ⚠ {quality.missing_win_probability:,} events had no win probability")

    if result.is_empty:
        print("\nNo players met the volume thresholds.")
        print("=" * 70)
        return

    summary = result.summary
    print(f"\nTop {min(top_n, len(result.ranked))} of {summary.n_players} qualifying players:")
    print("-" * 70)
    table = result.ranked.head(top_n)[list(REPORT_COLUMNS)].rename(columns=REPORT_COLUMNS)
    table["Player"] = table["Player"].fillna(result.ranked["player_id"].head(top_n))
    table["Team"] = table["Team"].fillna("")
    print(table.to_string(index=False, float_format=lambda v: f"{v:.1f}"))

    print("\nSummary Statistics:")
    print(f"  Mean GT %: {summary.mean_pct:.1f}")
    print(f"  Median GT %: {summary.median_pct:.1f}")
    print(f"  Trimmed Mean GT % (10%): {summary.trimmed_mean_pct:.1f}")
    for threshold, count in summary.players_above.items():
        print(f"  Players above {threshold:g}%: {count}")
    print("=" * 70)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rank players by the share of fantasy points scored in garbage time"
    )
    parser.add_argument("--season", type=int, default=2024, help="Season to analyze")
    parser.add_argument("--csv", default=None, help="Read play-by-play from a local CSV instead of downloading")
    parser.add_argument("--save-pbp", default=None, help="Save the downloaded play-by-play to this CSV path")
    parser.add_argument("--cache", action="store_true", help="Use nfl_data_py's local cache")
    parser.add_argument(
        "--wp-cutoff",
        type=float,
        default=0.05,
        help="Garbage time when win probability is below this or above 1 minus this",
    )
    parser.add_argument("--min-fantasy-points", type=float, default=100.0, help="Minimum season PPR points")
    parser.add_argument("--min-targets", type=int, default=50, help="Minimum season targets/opportunities")
    parser.add_argument("--top-n", type=int, default=15, help="Rows in the console report")
    parser.add_argument("--chart-top-n", type=int, default=20, help="Bars in the chart")
    parser.add_argument(
        "--season-type",
        default="REG",
        help="Season type to keep (REG, POST); use ALL for every game",
    )
    parser.add_argument(
        "--receiving-only",
        action="store_true",
        help="Count receiving targets only (ignore rushing attempts)",
    )
    parser.add_argument("--chart", default=None, help="Save the bar chart to this path")
    parser.add_argument("--output", default=None, help="Export the ranked list (.csv or .html)")
    parser.add_argument("--quiet", action="store_true", help="Hide progress messages")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for command-line usage."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    verbose = not args.quiet

    if args.output and not args.output.lower().endswith((".csv", ".html", ".htm")):
        parser.error("--output must end in .csv or .html")

    season_type = None if args.season_type.upper() == "ALL" else args.season_type
    try:
        analyzer = GarbageTimeAnalyzer(
            season=args.season,
            wp_cutoff=args.wp_cutoff,
            min_fantasy_points=args.min_fantasy_points,
            min_targets=args.min_targets,
            top_n_text=args.top_n,
            top_n_chart=args.chart_top_n,
            season_type=season_type,
            include_rushing=not args.receiving_only,
            verbose=verbose,
        )
    except ValueError as e:
        parser.error(str(e))

    try:
        if args.csv:
            pbp = load_pbp_csv(args.csv, verbose=verbose)
        else:
            pbp = load_pbp_data(args.season, cache=args.cache, verbose=verbose)
    except (PbpProviderError, FileNotFoundError, ValueError) as e:
        print(f"✗ Could not load play-by-play data: {e}")
        return 1

    if args.save_pbp:
        save_pbp_csv(pbp, args.save_pbp, verbose=verbose)

    result = analyzer.run_pipeline(pbp)
    print_report(result, top_n=analyzer.top_n_text)

    if args.output:
        analyzer.export_table(args.output)
    if args.chart:
        analyzer.plot_garbage_time_share(save_path=args.chart)

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Garbage-Time Fantasy Share Analysis

This module measures how much of each player's PPR fantasy production came during
low-leverage ("garbage time") game states. A play counts as garbage time when either
team is almost certain to win, judged by the possessing team's live win probability
rather than the raw score margin.

Pipeline: normalize events -> classify game state -> score plays -> aggregate per
player and regime -> select and rank by garbage-time share.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.stats import trim_mean

from data_fetchers.pbp_fetcher import load_pbp_data


DEFAULT_SCORING = {"reception": 1.0, "yard": 0.1, "touchdown": 6.0}

COUNTING_STATS = ("fantasy_points", "receptions", "yards", "touchdowns", "targets")
REGIMES = (("regular", False), ("garbage", True))

PLAYER_COLUMNS = (
    ["player_id", "player_name", "team"]
    + [f"{prefix}_{stat}" for prefix in ("regular", "garbage", "total") for stat in COUNTING_STATS]
    + ["garbage_time_pct"]
)

# Context columns carried through from the provider when present
CONTEXT_COLUMNS = ("game_id", "season", "week")


@dataclass
class DataQualityReport:
    """Counts of provider defects recovered by defaulting instead of aborting the run."""

    total_plays: int = 0
    player_events: int = 0
    missing_player: int = 0
    missing_win_probability: int = 0
    missing_completion_flag: int = 0
    missing_yardage: int = 0
    missing_touchdown_flag: int = 0
    coerced_points: int = 0
    negative_total_players: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class GarbageTimeSummary:
    """Read-only reductions over the ranked player list."""

    n_players: int
    mean_pct: Optional[float]
    median_pct: Optional[float]
    trimmed_mean_pct: Optional[float]
    players_above: Dict[float, int] = field(default_factory=dict)


@dataclass
class GarbageTimeResult:
    """Container for everything one pipeline run produces."""

    events: pd.DataFrame
    players: pd.DataFrame
    ranked: pd.DataFrame
    summary: GarbageTimeSummary
    data_quality: DataQualityReport
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.ranked.empty


class GarbageTimeAnalyzer:
    """
    Computes each player's share of fantasy points scored in garbage time.

    Features:
    - Normalizes nflverse play-by-play into one event per targeted/rushing play
    - Classifies plays with a symmetric win-probability cutoff
    - Scores plays with full-PPR rules
    - Splits player totals into regular vs garbage time and ranks qualifiers

    Example:
        analyzer = GarbageTimeAnalyzer(season=2024, verbose=True)
        result = analyzer.run_pipeline()
        analyzer.plot_garbage_time_share(save_path="garbage_time.png")
    """

    def __init__(
        self,
        season: int = 2024,
        wp_cutoff: float = 0.05,
        min_fantasy_points: float = 100.0,
        min_targets: int = 50,
        top_n_text: int = 15,
        top_n_chart: int = 20,
        pct_thresholds: Sequence[float] = (20.0, 30.0),
        season_type: Optional[str] = "REG",
        include_rushing: bool = True,
        scoring: Optional[Dict[str, float]] = None,
        verbose: bool = False
    ):
        """
        Initialize the GarbageTimeAnalyzer.

        Args:
            season: Season to download when run_pipeline() is called without data
            wp_cutoff: A play is garbage time when wp < cutoff or wp > 1 - cutoff
            min_fantasy_points: Minimum season fantasy points to be ranked (inclusive)
            min_targets: Minimum season targets/opportunities to be ranked (inclusive)
            top_n_text: Rows shown in the console report
            top_n_chart: Bars shown in the chart
            pct_thresholds: Garbage-time percentages to count players above
            season_type: Keep only this season type (e.g. "REG"); None keeps all games
            include_rushing: If False, only receiving targets are counted
            scoring: Overrides for the PPR scoring weights (reception, yard, touchdown)
            verbose: If True, print progress and data-quality messages
        """
        if not 0.0 < wp_cutoff < 0.5:
            raise ValueError(f"wp_cutoff must be between 0 and 0.5. Got: {wp_cutoff}")
        if min_fantasy_points < 0 or min_targets < 0:
            raise ValueError("min_fantasy_points and min_targets must be non-negative")
        if top_n_text < 1 or top_n_chart < 1:
            raise ValueError("top_n_text and top_n_chart must be at least 1")

        unknown = set(scoring or {}) - set(DEFAULT_SCORING)
        if unknown:
            raise ValueError(f"Unknown scoring keys: {sorted(unknown)}")

        self.season = season
        self.wp_cutoff = float(wp_cutoff)
        # Rounded so the upper boundary mirrors the lower one exactly (1 - 0.07 != 0.93)
        self.wp_upper = round(1.0 - self.wp_cutoff, 12)
        self.min_fantasy_points = float(min_fantasy_points)
        self.min_targets = int(min_targets)
        self.top_n_text = int(top_n_text)
        self.top_n_chart = int(top_n_chart)
        self.pct_thresholds = tuple(float(t) for t in pct_thresholds)
        self.season_type = season_type
        self.include_rushing = include_rushing
        self.scoring = {**DEFAULT_SCORING, **(scoring or {})}
        self.verbose = verbose

        # Set only after a full run succeeds
        self.result: Optional[GarbageTimeResult] = None

    # ==================== UTILITY METHODS ====================

    @staticmethod
    def _column(df: pd.DataFrame, name: str) -> pd.Series:
        """Return a column, or an all-missing column when the provider omitted it."""
        if name in df.columns:
            return df[name]
        return pd.Series(np.nan, index=df.index, dtype=float)

    @staticmethod
    def _to_float(series: pd.Series) -> pd.Series:
        if series.dtype == bool:
            return series.astype(float)
        return pd.to_numeric(series, errors="coerce").astype(float)

    @staticmethod
    def _empty_player_frame() -> pd.DataFrame:
        frame = pd.DataFrame({col: pd.Series(dtype=float) for col in PLAYER_COLUMNS})
        for col in ("player_id", "player_name", "team"):
            frame[col] = frame[col].astype(object)
        return frame

    def settings(self) -> Dict[str, Any]:
        return {
            "season": self.season,
            "wp_cutoff": self.wp_cutoff,
            "min_fantasy_points": self.min_fantasy_points,
            "min_targets": self.min_targets,
            "season_type": self.season_type,
            "include_rushing": self.include_rushing,
            "scoring": dict(self.scoring),
        }

    # ==================== DATA LOADING ====================

    def load_events(self) -> pd.DataFrame:
        """Download the configured season's play-by-play."""
        return load_pbp_data(self.season, verbose=self.verbose)

    def normalize_events(self, pbp: pd.DataFrame) -> Tuple[pd.DataFrame, DataQualityReport]:
        """
        Convert provider play-by-play into well-defined scoring events.

        Missing fields are recovered here, once: yardage defaults to 0, flags to False,
        and plays whose scoring inputs were missing are marked ``scorable = False`` so
        the scorer can zero them. Win probability stays NaN (classified as regular
        time). Every recovery is counted in the returned DataQualityReport.

        Args:
            pbp: nflverse-style play-by-play DataFrame

        Returns:
            Tuple of (events_df, data_quality_report)
        """
        if self.verbose:
            print("\nNormalizing play-by-play events...")

        report = DataQualityReport(total_plays=len(pbp))

        df = pbp
        if self.season_type is not None and "season_type" in df.columns:
            df = df[df["season_type"].astype(str).str.upper() == self.season_type.upper()]
        df = df.reset_index(drop=True)

        play_type_raw = self._column(df, "play_type").astype("string").str.strip().str.lower()
        is_pass = play_type_raw.eq("pass").fillna(False).astype(bool)
        is_run = play_type_raw.eq("run").fillna(False).astype(bool)
        counts_run = is_run & self.include_rushing

        # Receiver on pass plays, rusher on run plays
        player_id = self._column(df, "receiver_player_id").where(
            is_pass, self._column(df, "rusher_player_id").where(counts_run)
        )
        player_name = self._column(df, "receiver_player_name").where(
            is_pass, self._column(df, "rusher_player_name").where(counts_run)
        )

        complete_raw = self._to_float(self._column(df, "complete_pass"))
        rec_yards = self._to_float(self._column(df, "receiving_yards"))
        rush_yards = self._to_float(self._column(df, "rushing_yards"))
        touchdown_raw = self._to_float(self._column(df, "pass_touchdown")).where(
            is_pass, self._to_float(self._column(df, "rush_touchdown")).where(is_run, 0.0)
        )
        wp = self._to_float(self._column(df, "wp"))

        complete = is_pass & complete_raw.eq(1.0)
        missing_yards = (complete & rec_yards.isna()) | (is_run & rush_yards.isna())
        missing_touchdown = (complete | is_run) & touchdown_raw.isna()

        has_player = player_id.notna()
        report.player_events = int(has_player.sum())
        report.missing_player = int(((is_pass | counts_run) & ~has_player).sum())
        report.missing_win_probability = int((has_player & wp.isna()).sum())
        report.missing_completion_flag = int((has_player & is_pass & complete_raw.isna()).sum())
        report.missing_yardage = int((has_player & missing_yards).sum())
        report.missing_touchdown_flag = int((has_player & missing_touchdown).sum())

        events = pd.DataFrame(index=df.index)
        for col in CONTEXT_COLUMNS:
            if col in df.columns:
                events[col] = df[col]
        events["player_id"] = player_id
        events["player_name"] = player_name
        events["team"] = self._column(df, "posteam")
        events["play_type"] = np.select([is_pass, is_run], ["pass", "run"], default="other")
        events["complete"] = complete
        events["receiving_yards"] = rec_yards.fillna(0.0)
        events["rushing_yards"] = rush_yards.fillna(0.0)
        events["touchdown"] = touchdown_raw.eq(1.0)
        events["wp"] = wp
        events["scorable"] = ~(missing_yards | missing_touchdown)

        if self.verbose:
            print(f"  ✓ {report.player_events:,} player events from {report.total_plays:,} plays")
            self._print_data_quality(report)

        return events, report

    def _print_data_quality(self, report: DataQualityReport) -> None:
        issues = {
            "plays without a receiver/rusher": report.missing_player,
            "events missing win probability (kept as regular time)": report.missing_win_probability,
            "pass events missing completion flag (treated as incomplete)": report.missing_completion_flag,
            "events missing yardage (scored 0)": report.missing_yardage,
            "events missing touchdown flag (scored 0)": report.missing_touchdown_flag,
        }
        for label, count in issues.items():
            if count:
                print(f"  ⚠ {count:,} {label}")

    # ==================== CLASSIFICATION ====================

    def classify_garbage_time(self, events: pd.DataFrame) -> pd.DataFrame:
        """
        Tag each event as garbage time (True) or regular time (False).

        Garbage time when wp < cutoff OR wp > 1 - cutoff. Boundary values are regular
        time, and a missing win probability is always regular time.
        """
        wp = pd.to_numeric(self._column(events, "wp"), errors="coerce")
        garbage = (wp < self.wp_cutoff) | (wp > self.wp_upper)

        if self.verbose:
            print(f"\nClassified {int(garbage.sum()):,} of {len(events):,} events as garbage time")

        return events.assign(garbage_time=garbage.astype(bool))

    # ==================== SCORING ====================

    def calculate_fantasy_points(
        self,
        events: pd.DataFrame,
        report: Optional[DataQualityReport] = None
    ) -> pd.DataFrame:
        """
        Score every event with PPR rules.

        - Completed pass: reception + yard * receiving_yards + touchdown * td
        - Incomplete pass: 0 (still a target)
        - Run: yard * rushing_yards + touchdown * td (may be negative)
        - Anything else: 0

        Events that are not scorable, or whose value comes out non-finite, are set to
        0. Those carrying a player are counted in ``report.coerced_points``.
        """
        s = self.scoring
        is_catch = events["play_type"].eq("pass") & events["complete"].astype(bool)
        is_run = events["play_type"].eq("run")

        td_points = s["touchdown"] * events["touchdown"].astype(float)
        catch_points = s["reception"] + s["yard"] * events["receiving_yards"] + td_points
        run_points = s["yard"] * events["rushing_yards"] + td_points

        points = pd.Series(
            np.select([is_catch, is_run], [catch_points, run_points], default=0.0),
            index=events.index,
            dtype=float,
        )

        scorable = events["scorable"] if "scorable" in events.columns else pd.Series(True, index=events.index)
        invalid = ~scorable.astype(bool) | ~np.isfinite(points)
        # Plays without a player never reach aggregation
        has_player = self._column(events, "player_id").notna()
        coerced = int((invalid & has_player).sum())
        points = points.mask(invalid, 0.0)

        if report is not None:
            report.coerced_points += coerced
        if self.verbose and coerced:
            print(f"  ⚠ Coerced {coerced:,} event scores to 0 (missing scoring inputs)")

        return events.assign(fantasy_points=points)

    # ==================== AGGREGATION ====================

    def aggregate_players(
        self,
        events: pd.DataFrame,
        report: Optional[DataQualityReport] = None
    ) -> pd.DataFrame:
        """
        Sum counting stats per player for each game-state regime and merge them.

        Groups by (player, regime), then builds one row per player with regular_*,
        garbage_* and total_* columns. A player with no events in one regime gets
        zeros for it. Players appear in order of their first event.

        Returns:
            DataFrame with PLAYER_COLUMNS
        """
        if self.verbose:
            print("\nAggregating players by game state...")

        plays = events[events["player_id"].notna()]
        if plays.empty:
            if self.verbose:
                print("  ⚠ No player events to aggregate")
            return self._empty_player_frame()

        is_catch = plays["play_type"].eq("pass") & plays["complete"].astype(bool)
        is_run = plays["play_type"].eq("run")
        plays = plays.assign(
            reception=is_catch.astype(int),
            catch_yards=plays["receiving_yards"].where(is_catch, 0.0),
            scored_td=(plays["touchdown"].astype(bool) & (is_catch | is_run)).astype(int),
        )

        by_regime = plays.groupby(["player_id", "garbage_time"], sort=False).agg(
            fantasy_points=("fantasy_points", "sum"),
            receptions=("reception", "sum"),
            yards=("catch_yards", "sum"),
            touchdowns=("scored_td", "sum"),
            targets=("fantasy_points", "size"),
        ).reset_index()

        player_index = pd.Index(pd.unique(plays["player_id"]), name="player_id")
        players = pd.DataFrame(index=player_index)

        for regime, flag in REGIMES:
            part = by_regime[by_regime["garbage_time"] == flag].set_index("player_id")
            part = part.reindex(player_index, fill_value=0)
            for stat in COUNTING_STATS:
                players[f"{regime}_{stat}"] = part[stat]

        for stat in COUNTING_STATS:
            players[f"total_{stat}"] = players[f"regular_{stat}"] + players[f"garbage_{stat}"]

        for prefix in ("regular", "garbage", "total"):
            players[f"{prefix}_fantasy_points"] = players[f"{prefix}_fantasy_points"].astype(float)
            players[f"{prefix}_yards"] = players[f"{prefix}_yards"].astype(float)
            for stat in ("receptions", "touchdowns", "targets"):
                players[f"{prefix}_{stat}"] = players[f"{prefix}_{stat}"].astype(int)

        total = players["total_fantasy_points"]
        positive_total = total.where(total > 0)
        pct = (100.0 * players["garbage_fantasy_points"] / positive_total).fillna(0.0)
        players["garbage_time_pct"] = pct.clip(lower=0.0, upper=100.0)

        grouped = plays.groupby("player_id", sort=False)
        players["player_name"] = grouped["player_name"].first().reindex(player_index)
        # Most recent team for players who changed teams mid-season
        players["team"] = grouped["team"].last().reindex(player_index)

        players = players.reset_index()[PLAYER_COLUMNS]

        negative = int((players["total_fantasy_points"] < 0).sum())
        if report is not None:
            report.negative_total_players = negative

        if self.verbose:
            print(f"  ✓ Aggregated {len(players):,} players")
            if negative:
                print(f"  ⚠ {negative:,} players have negative season totals (garbage share set to 0)")

        return players

    # ==================== SELECTION ====================

    def select_players(
        self,
        players: pd.DataFrame,
        min_fantasy_points: Optional[float] = None,
        min_targets: Optional[int] = None
    ) -> pd.DataFrame:
        """
        Keep players meeting both volume thresholds and rank by garbage-time share.

        Thresholds are inclusive. Ties keep their aggregation order (stable sort).
        An empty frame means nobody qualified.

        Args:
            players: Output of aggregate_players()
            min_fantasy_points: Override for the configured fantasy point minimum
            min_targets: Override for the configured target minimum

        Returns:
            DataFrame with a 1-based rank column followed by PLAYER_COLUMNS
        """
        if min_fantasy_points is None:
            min_fantasy_points = self.min_fantasy_points
        if min_targets is None:
            min_targets = self.min_targets

        qualified = players[
            (players["total_fantasy_points"] >= min_fantasy_points)
            & (players["total_targets"] >= min_targets)
        ]
        ranked = qualified.sort_values(
            "garbage_time_pct", ascending=False, kind="mergesort"
        ).reset_index(drop=True)
        ranked.insert(0, "rank", np.arange(1, len(ranked) + 1))

        if self.verbose:
            print(
                f"\nSelected {len(ranked):,} of {len(players):,} players "
                f"(>= {min_fantasy_points:g} pts, >= {min_targets} targets)"
            )

        return ranked

    # ==================== SUMMARY ====================

    def summarize(self, ranked: pd.DataFrame, trim: float = 0.10) -> GarbageTimeSummary:
        """Mean, median, trimmed mean and threshold counts of garbage-time share."""
        pct = ranked["garbage_time_pct"].astype(float).to_numpy()
        players_above = {t: int((pct > t).sum()) for t in self.pct_thresholds}

        if len(pct) == 0:
            return GarbageTimeSummary(
                n_players=0,
                mean_pct=None,
                median_pct=None,
                trimmed_mean_pct=None,
                players_above=players_above,
            )

        return GarbageTimeSummary(
            n_players=len(pct),
            mean_pct=float(np.mean(pct)),
            median_pct=float(np.median(pct)),
            trimmed_mean_pct=float(trim_mean(pct, proportiontocut=trim)),
            players_above=players_above,
        )

    # ==================== FULL PIPELINE ====================

    def run_pipeline(self, pbp: Optional[pd.DataFrame] = None) -> GarbageTimeResult:
        """
        Run the complete analysis.

        Args:
            pbp: Play-by-play to analyze. If None, the configured season is downloaded
                 first; a download failure raises PbpProviderError before any analysis.

        Returns:
            GarbageTimeResult
        """
        if self.verbose:
            print("=" * 70)
            print("GARBAGE-TIME FANTASY SHARE PIPELINE")
            print("=" * 70)

        if pbp is None:
            pbp = self.load_events()

        events, report = self.normalize_events(pbp)
        events = self.classify_garbage_time(events)
        events = self.calculate_fantasy_points(events, report)
        players = self.aggregate_players(events, report)
        ranked = self.select_players(players)
        summary = self.summarize(ranked)

        result = GarbageTimeResult(
            events=events,
            players=players,
            ranked=ranked,
            summary=summary,
            data_quality=report,
            settings=self.settings(),
        )
        self.result = result
        return result

    # ==================== VISUALIZATION METHODS ====================

    def _require_ranked(self, ranked: Optional[pd.DataFrame]) -> pd.DataFrame:
        if ranked is not None:
            return ranked
        if self.result is None:
            raise ValueError("No ranked players. Run pipeline first.")
        return self.result.ranked

    def plot_garbage_time_share(
        self,
        ranked: Optional[pd.DataFrame] = None,
        top_n: Optional[int] = None,
        save_path: Optional[str] = None
    ) -> plt.Figure:
        """
        Horizontal bar chart of the top players' garbage-time share.

        Each bar is annotated with garbage-time points over total points, and the
        dashed line marks the mean share across all ranked players.

        Args:
            ranked: Ranked players (uses the last pipeline result if None)
            top_n: Number of bars (default: top_n_chart)
            save_path: Optional path to save figure

        Returns:
            matplotlib Figure
        """
        ranked = self._require_ranked(ranked)
        top = ranked.head(top_n or self.top_n_chart)

        fig, ax = plt.subplots(figsize=(11, max(4, len(top) * 0.45)))

        if top.empty:
            ax.text(
                0.5, 0.5, "No players met the volume thresholds",
                ha="center", va="center", fontsize=12, transform=ax.transAxes
            )
            ax.set_axis_off()
        else:
            names = top["player_name"].fillna(top["player_id"]).astype(str)
            teams = top["team"].fillna("").astype(str)
            labels = [
                f"{rank}. {name} ({team})" if team else f"{rank}. {name}"
                for rank, name, team in zip(top["rank"], names, teams)
            ]
            pct = top["garbage_time_pct"].astype(float).to_numpy()

            sns.barplot(x=pct, y=labels, orient="h", color="#c0392b", ax=ax)
            for i, row in enumerate(top.itertuples(index=False)):
                ax.text(
                    row.garbage_time_pct + 0.5, i,
                    f"{row.garbage_fantasy_points:.1f} / {row.total_fantasy_points:.1f} pts",
                    va="center", fontsize=8
                )

            mean_pct = float(ranked["garbage_time_pct"].mean())
            ax.axvline(mean_pct, linestyle="--", color="gray", label=f"Mean = {mean_pct:.1f}%")
            ax.set_xlim(0, pct.max() * 1.3 + 1)
            ax.set_xlabel("Fantasy Points Scored in Garbage Time (%)", fontsize=12)
            ax.set_ylabel("")
            ax.grid(axis="x", alpha=0.2)
            ax.legend(loc="lower right")

        ax.set_title(
            f"Garbage-Time Share of PPR Points, {self.season}\n"
            f"(win probability < {self.wp_cutoff:.0%} or > {self.wp_upper:.0%})",
            fontsize=14, fontweight="bold"
        )
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches="tight")
            if self.verbose:
                print(f"[saved] {save_path}")

        return fig

    # ==================== EXPORT ====================

    def export_table(self, path: Path | str, ranked: Optional[pd.DataFrame] = None) -> Path:
        """
        Write the ranked players to ``.csv`` or a browsable ``.html`` table.

        Returns:
            Path written
        """
        ranked = self._require_ranked(ranked)
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == ".csv":
            ranked.to_csv(path, index=False)
        elif suffix in {".html", ".htm"}:
            ranked.to_html(
                path,
                index=False,
                float_format=lambda v: f"{v:.1f}",
                border=0,
                classes="garbage-time",
                na_rep="",
            )
        else:
            raise ValueError(f"Unsupported export format '{path.suffix}'. Use .csv or .html")

        if self.verbose:
            print(f"[saved] {path} ({len(ranked):,} rows)")

        return path

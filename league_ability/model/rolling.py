"""
Rolling re-estimation over a growing window of the season.

For each checkpoint w the model is refit from scratch on matches 1..w*C.
The ability draws for the rounds first reached in batch w are copied into
the shared timeline; later, smoother refits never overwrite them.
"""

from __future__ import annotations

import logging
import pickle
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from league_ability.model.data import LeagueData
from league_ability.model.errors import InferenceFailure
from league_ability.model.inference import InferenceRun, ModelFitter
from league_ability.model.timeline import AbilityTimeline

logger = logging.getLogger(__name__)

Engine = Callable[[LeagueData, int], InferenceRun]


@dataclass
class PipelineConfig:
    """Operational parameters for a season run."""

    batch_size: int = 10
    credible_levels: tuple[float, ...] = (0.5, 0.95)
    wager_unit: float = 1.0
    n_workers: int = 1


@dataclass
class RollingResult:
    """
    Output of a rolling run.

    Attributes:
        data: The full season
        runs: Successful InferenceRuns keyed by checkpoint
        failed: Error message per failed checkpoint
        timeline: Stitched ability timeline
    """

    data: LeagueData
    runs: dict[int, InferenceRun]
    timeline: AbilityTimeline
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed and self.timeline.is_complete(self.data.rounds_played())

    def report(self) -> dict:
        """Summary of which checkpoints succeeded and how much of the timeline is set."""
        expected = self.data.rounds_played()
        missing = self.timeline.missing_cells(expected)
        return {
            "n_checkpoints": self.data.n_checkpoints,
            "succeeded": sorted(self.runs),
            "failed": dict(sorted(self.failed.items())),
            "timeline_coverage": self.timeline.coverage_fraction(expected),
            "missing_cells": missing,
            "complete": self.complete,
        }

    def save(self, directory: Path) -> Path:
        """
        Save all pipeline state to a directory.

        Layout:
            metadata.pkl            data, failed checkpoints
            timeline.nc             ability timeline
            runs/checkpoint_NNN/    one InferenceRun per successful checkpoint
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        with open(directory / "metadata.pkl", "wb") as f:
            pickle.dump({"data": self.data, "failed": self.failed}, f)
        self.timeline.save(directory / "timeline.nc")
        for w, run in self.runs.items():
            run.save(directory / "runs" / f"checkpoint_{w:03d}")

        logger.info("Saved rolling result to %s", directory)
        return directory

    @classmethod
    def load(cls, directory: Path) -> "RollingResult":
        directory = Path(directory)
        if not (directory / "metadata.pkl").exists():
            raise ValueError(f"No saved rolling result in {directory}")

        with open(directory / "metadata.pkl", "rb") as f:
            metadata = pickle.load(f)

        runs = {}
        runs_dir = directory / "runs"
        if runs_dir.exists():
            for run_dir in sorted(runs_dir.iterdir()):
                run = InferenceRun.load(run_dir)
                runs[run.checkpoint] = run

        return cls(
            data=metadata["data"],
            runs=runs,
            timeline=AbilityTimeline.load(directory / "timeline.nc"),
            failed=metadata["failed"],
        )


def _fit_checkpoint(engine: Engine, data: LeagueData, checkpoint: int) -> InferenceRun:
    return engine(data.window(checkpoint), checkpoint)


class RollingController:
    """
    Drives one model fit per checkpoint and stitches the ability timeline.

    Each checkpoint is a pure function of matches 1..w*C, so checkpoints can
    run in parallel. The timeline is then written in checkpoint order; every
    cell has exactly one owner because a team reaches each round in exactly
    one match.

    Usage:
        controller = RollingController(data, ModelFitter(), PipelineConfig())
        result = controller.run()
        print(result.report())
    """

    def __init__(
        self,
        data: LeagueData,
        engine: Engine | None = None,
        config: PipelineConfig | None = None,
    ):
        self.data = data
        self.engine = engine or ModelFitter()
        self.config = config or PipelineConfig(batch_size=data.batch_size)

    def fit_checkpoints(
        self, checkpoints: list[int] | None = None
    ) -> tuple[dict[int, InferenceRun], dict[int, str]]:
        """
        Run the engine for each checkpoint.

        Returns:
            (runs, failed): successful runs and failure messages, by checkpoint
        """
        if checkpoints is None:
            checkpoints = list(range(1, self.data.n_checkpoints + 1))

        runs: dict[int, InferenceRun] = {}
        failed: dict[int, str] = {}

        if self.config.n_workers > 1:
            with ProcessPoolExecutor(max_workers=self.config.n_workers) as pool:
                futures = {
                    pool.submit(_fit_checkpoint, self.engine, self.data, w): w
                    for w in checkpoints
                }
                for future in as_completed(futures):
                    w = futures[future]
                    try:
                        runs[w] = future.result()
                    except InferenceFailure as e:
                        failed[w] = str(e)
                        logger.error("Checkpoint %d failed: %s", w, e)
        else:
            for w in checkpoints:
                try:
                    runs[w] = _fit_checkpoint(self.engine, self.data, w)
                except InferenceFailure as e:
                    failed[w] = str(e)
                    logger.error("Checkpoint %d failed: %s", w, e)

        for w, run in list(runs.items()):
            if not run.valid:
                failed[w] = f"Checkpoint {w}: run marked invalid"
                del runs[w]

        return dict(sorted(runs.items())), dict(sorted(failed.items()))

    def stitch(self, runs: dict[int, InferenceRun]) -> AbilityTimeline:
        """
        Build the timeline from successful runs.

        For every match g in checkpoint w's batch, the draws of
        a[home_round(g), home_team(g)] and a[away_round(g), away_team(g)]
        from run w are written to the timeline.

        Raises:
            ValueError: If runs disagree on the number of draws
            RuntimeError: If any cell would be written twice
        """
        n_draws = {run.n_draws for run in runs.values()}
        if len(n_draws) > 1:
            raise ValueError(f"Runs have differing draw counts: {sorted(n_draws)}")
        timeline = AbilityTimeline(
            n_draws=n_draws.pop() if n_draws else 0,
            n_rounds=self.data.max_round(),
            n_teams=self.data.n_teams,
        )

        for w in sorted(runs):
            run = runs[w]
            for m in self.data.batch(w):
                timeline.write(
                    m.home_round, m.home_team,
                    run.ability[:, m.home_round - 1, m.home_team - 1], w,
                )
                timeline.write(
                    m.away_round, m.away_team,
                    run.ability[:, m.away_round - 1, m.away_team - 1], w,
                )

        return timeline

    def run(self, checkpoints: list[int] | None = None) -> RollingResult:
        """
        Fit every checkpoint and stitch the timeline.

        Failed checkpoints are recorded in RollingResult.failed and their
        cells are left unset; nothing is interpolated over the gap.
        """
        runs, failed = self.fit_checkpoints(checkpoints)
        timeline = self.stitch(runs)
        result = RollingResult(data=self.data, runs=runs, timeline=timeline, failed=failed)

        report = result.report()
        if report["complete"]:
            logger.info("All %d checkpoints fit; timeline complete", self.data.n_checkpoints)
        else:
            logger.warning(
                "Timeline incomplete: %d failed checkpoints, %.1f%% of cells set",
                len(failed), 100 * report["timeline_coverage"],
            )
        return result

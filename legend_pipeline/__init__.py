"""Per-legend chess move index: ingest a legend's PGN games, then recommend moves and score guesses."""

from legend_pipeline.legend_builder import LegendIndices, LegendLibrary, build_from_pgn, build_legend_indices

__all__ = ["LegendIndices", "LegendLibrary", "build_from_pgn", "build_legend_indices"]

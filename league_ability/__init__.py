"""
League Ability: sequential Bayesian estimation of team strength in round-robin leagues.

This package provides:
- Team-relative round indexing of an irregular fixture list
- A hierarchical Student-t state-space model of per-round team ability
- Rolling re-estimation over a growing window of the season
- A write-once ability timeline stitched across checkpoint fits
- Out-of-sample posterior predictive forecasts
- Coverage calibration and a betting backtest
"""

__version__ = "0.1.0"

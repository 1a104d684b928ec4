"""
Aggregate reports over the interaction ledger.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from resource_engine.interactions.events import RecommendationRecord
from resource_engine.recommendations.experiments import Experiment
from resource_engine.recommendations.strategies import Strategy

logger = logging.getLogger(__name__)

Z_95 = 1.96

RECORD_COLUMNS = [
    "id", "user_id", "resource_id", "strategy", "position", "score",
    "experiment_id", "variant_id", "created_at",
    "clicked", "completed", "rating",
]


def records_to_frame(records: Iterable[RecommendationRecord]) -> pd.DataFrame:
    """Flatten ledger records into a DataFrame with a fixed column set"""
    rows = [r.model_dump(include=set(RECORD_COLUMNS)) for r in records]
    df = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    df["clicked"] = df["clicked"].astype(bool)
    df["completed"] = df["completed"].astype(bool)
    df["rating"] = pd.to_numeric(df["rating"], errors="coerce")
    return df


def _rate(mask: pd.Series) -> float:
    return float(mask.mean()) if len(mask) > 0 else 0.0


def _mean_rating(ratings: pd.Series) -> float:
    rated = ratings.dropna()
    return float(rated.mean()) if len(rated) > 0 else 0.0


def overview(df: pd.DataFrame) -> Dict[str, Any]:
    return {
        "total_recommendations": int(len(df)),
        "click_through_rate": _rate(df["clicked"]),
        "completion_rate": _rate(df["completed"]),
    }


def strategy_performance(df: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
    """Volume, click-through, completion and mean rating for every strategy"""
    performance = {}
    for strategy in Strategy:
        subset = df[df["strategy"] == strategy.value]
        performance[strategy.value] = {
            "total_recommendations": int(len(subset)),
            "click_through_rate": _rate(subset["clicked"]),
            "completion_rate": _rate(subset["completed"]),
            "average_rating": _mean_rating(subset["rating"]),
        }
    return performance


def confidence_interval(values: Sequence[float], z: float = Z_95) -> Dict[str, float]:
    """
    Normal-approximation interval for the mean of values in [0, 1].

    Uses the population standard deviation; bounds are clipped to [0, 1].
    """
    if len(values) == 0:
        return {"lower": 0.0, "upper": 0.0}
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    margin = z * float(arr.std()) / math.sqrt(len(arr))
    return {
        "lower": max(0.0, mean - margin),
        "upper": min(1.0, mean + margin),
    }


def experiment_results(df: pd.DataFrame, experiments: Iterable[Experiment]) -> Dict[str, Dict[str, Any]]:
    """Per-variant outcomes for each experiment, with a short reading of them"""
    results = {}
    for experiment in experiments:
        exp_df = df[df["experiment_id"] == experiment.id]
        min_sample = experiment.statistical_config.min_sample_size

        variants = {}
        for variant in experiment.variants:
            subset = exp_df[exp_df["variant_id"] == variant.id]
            variants[variant.id] = {
                "name": variant.name,
                "strategy": variant.strategy.value,
                "sample_size": int(len(subset)),
                "click_through_rate": _rate(subset["clicked"]),
                "completion_rate": _rate(subset["completed"]),
                "average_rating": _mean_rating(subset["rating"]),
                "confidence": confidence_interval(subset["clicked"].astype(float).tolist()),
                "statistically_significant": len(subset) >= min_sample,
            }

        results[experiment.id] = {
            "name": experiment.name,
            "status": experiment.status.value,
            "total_participants": int(exp_df["user_id"].nunique()),
            "total_recommendations": int(len(exp_df)),
            "variants": variants,
            "recommendations": _experiment_recommendations(variants),
        }
    return results


def _experiment_recommendations(variants: Dict[str, Dict[str, Any]]) -> List[str]:
    notes = []

    # Only variants with a minimal sample compete for best
    candidates = [v for v in variants.values() if v["sample_size"] >= 30]
    if candidates:
        best = max(candidates, key=lambda v: v["click_through_rate"])
        notes.append(f"Consider implementing {best['name']} as the primary strategy")

    if not any(v["statistically_significant"] for v in variants.values()):
        notes.append("Continue test to reach statistical significance")

    if any(
        v["sample_size"] > 0 and v["confidence"]["upper"] - v["confidence"]["lower"] > 0.2
        for v in variants.values()
    ):
        notes.append("Increase sample size to reduce confidence interval width")

    return notes


def build_report(
    records: Iterable[RecommendationRecord],
    experiments: Iterable[Experiment]
) -> Dict[str, Any]:
    """Overview, per-strategy performance and experiment results"""
    df = records_to_frame(records)
    logger.debug(f"Building analytics report over {len(df)} recommendation records")
    return {
        "overview": overview(df),
        "strategy_performance": strategy_performance(df),
        "experiment_results": experiment_results(df, experiments),
    }

"""
Refinement metrics - track session outcomes and which categories fix queries.

This module provides observability into the search:
- How sessions end (success, exhausted, unclassifiable, ...)
- Which refinement categories are executed and which lead to success
- How many candidate executions sessions need

Use this data to:
- Tune category weights and top_k_expansion
- Spot error shapes that stay unclassifiable
"""

from collections import Counter
from typing import Any, Dict

from loguru import logger

from src.refinement.categories import RefinementCategory


# Global metrics (in-memory)
refinement_metrics: Dict[str, Counter] = {
    "sessions": Counter(),     # {"success": 12, "exhausted": 3}
    "executed": Counter(),     # {"column": 40, "join": 7}
    "fixed": Counter(),        # {"column": 10, "value": 2}
    "executions": Counter(),   # {"total": 130}
}


def record_session(status: str, executions: int = 0, hops: int = 0) -> None:
    """
    Record the outcome of one refinement session.

    Args:
        status: Terminal status value ("success", "exhausted", ...)
        executions: Candidate executions the session used
        hops: Hop depth the session reached

    Example:
        >>> record_session("success", executions=2, hops=1)
        >>> refinement_metrics["sessions"]["success"]
        1
    """
    refinement_metrics["sessions"][status] += 1
    refinement_metrics["executions"]["total"] += executions
    refinement_metrics["executions"]["hops"] += hops
    logger.debug(f"Recorded session: {status} ({executions} executions, {hops} hops)")


def record_fix(category: RefinementCategory, success: bool) -> None:
    """
    Record a candidate.

    Args:
        category: Category of the candidate
        success: False when the candidate is executed; True when it is part
            of the edit chain of a successful session (already counted as executed)
    """
    if success:
        refinement_metrics["fixed"][category.value] += 1
        logger.debug(f"✅ Recorded fix: {category.value}")
    else:
        refinement_metrics["executed"][category.value] += 1


def get_metrics_summary() -> Dict[str, Any]:
    """
    Get a summary of refinement metrics.

    Returns:
        Dict with session and category statistics

    Example:
        >>> summary = get_metrics_summary()
        >>> summary["success_rate"]
        0.8
    """
    total_sessions = sum(refinement_metrics["sessions"].values())
    successes = refinement_metrics["sessions"]["success"]
    total_executions = refinement_metrics["executions"]["total"]

    return {
        "total_sessions": total_sessions,
        "successes": successes,
        "success_rate": successes / total_sessions if total_sessions > 0 else 0.0,
        "total_executions": total_executions,
        "avg_executions": total_executions / total_sessions if total_sessions > 0 else 0.0,
        "by_status": dict(refinement_metrics["sessions"]),
        "by_category": {
            "executed": dict(refinement_metrics["executed"]),
            "fixed": dict(refinement_metrics["fixed"]),
        },
    }


def log_metrics_summary() -> None:
    """
    Log a summary of refinement metrics at INFO level.
    """
    summary = get_metrics_summary()

    if summary["total_sessions"] == 0:
        logger.info("No refinement sessions recorded yet")
        return

    logger.info("=" * 60)
    logger.info("SQL REFINEMENT METRICS")
    logger.info("=" * 60)
    logger.info(f"Total sessions: {summary['total_sessions']}")
    logger.info(f"Successful: {summary['successes']} ({summary['success_rate']:.1%})")
    logger.info(f"Avg executions per session: {summary['avg_executions']:.1f}")
    for status, count in summary["by_status"].items():
        logger.info(f"  - {status}: {count}")
    logger.info("=" * 60)

    if refinement_metrics["fixed"]:
        logger.info("Top fixing categories:")
        for category, count in refinement_metrics["fixed"].most_common(5):
            logger.info(f"  - {category}: {count}")


def reset_metrics() -> None:
    """Reset all metrics (useful for testing)."""
    for counter in refinement_metrics.values():
        counter.clear()
    logger.debug("Refinement metrics reset")

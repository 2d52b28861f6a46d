"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter
from chartkit.core.performance import PerformanceMonitor

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """
    Get performance metrics.

    Returns timing statistics for every tracked operation: request
    duration, file parsing, dataset analysis and chart-data generation.
    """
    return {'performance': PerformanceMonitor.get_all_metrics()}

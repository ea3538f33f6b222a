"""
Request timing middleware.

Keeps in-process counters per endpoint and logs slow requests on the
``leadcrm.performance`` logger.
"""

import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

perf_logger = logging.getLogger("leadcrm.performance")

SLOW_REQUEST_MS = 500
VERY_SLOW_REQUEST_MS = 1000
MAX_SLOW_REQUESTS = 10


def _empty_stats():
    return {
        "total_requests": 0,
        "total_time": 0.0,
        "endpoints": {},
        "slow_requests": [],
    }


performance_stats = _empty_stats()


class SimplePerformanceMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # route template, so /leads/7 and /leads/8 share one bucket
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        endpoint = f"{request.method} {path}"

        self._update_stats(endpoint, duration, response.status_code)
        self._log_request(endpoint, duration * 1000, response.status_code)

        response.headers["X-Process-Time"] = f"{duration * 1000:.1f}ms"
        return response

    def _update_stats(self, endpoint: str, duration: float, status_code: int):
        performance_stats["total_requests"] += 1
        performance_stats["total_time"] += duration

        endpoint_stats = performance_stats["endpoints"].setdefault(endpoint, {
            "count": 0,
            "total_time": 0.0,
            "min_time": float("inf"),
            "max_time": 0.0,
            "errors": 0,
        })
        endpoint_stats["count"] += 1
        endpoint_stats["total_time"] += duration
        endpoint_stats["min_time"] = min(endpoint_stats["min_time"], duration)
        endpoint_stats["max_time"] = max(endpoint_stats["max_time"], duration)
        if status_code >= 400:
            endpoint_stats["errors"] += 1

        duration_ms = duration * 1000
        if duration_ms > SLOW_REQUEST_MS:
            performance_stats["slow_requests"].append({
                "endpoint": endpoint,
                "duration_ms": round(duration_ms, 1),
                "timestamp": time.time(),
                "status_code": status_code,
            })
            del performance_stats["slow_requests"][:-MAX_SLOW_REQUESTS]

    def _log_request(self, endpoint: str, duration_ms: float, status_code: int):
        if duration_ms > VERY_SLOW_REQUEST_MS:
            perf_logger.warning(f"{endpoint} - {duration_ms:.1f}ms - {status_code} [SLOW]")
        elif duration_ms > SLOW_REQUEST_MS:
            perf_logger.info(f"{endpoint} - {duration_ms:.1f}ms - {status_code} [ELEVATED]")
        else:
            perf_logger.debug(f"{endpoint} - {duration_ms:.1f}ms - {status_code}")


def get_performance_stats():
    """Snapshot of the counters with averages in milliseconds."""
    total = performance_stats["total_requests"]
    endpoints = {}
    for endpoint, data in performance_stats["endpoints"].items():
        endpoints[endpoint] = {
            "count": data["count"],
            "errors": data["errors"],
            "avg_time_ms": round(data["total_time"] / data["count"] * 1000, 1),
            "min_time_ms": round(data["min_time"] * 1000, 1),
            "max_time_ms": round(data["max_time"] * 1000, 1),
        }

    return {
        "total_requests": total,
        "avg_response_time_ms": round(performance_stats["total_time"] / total * 1000, 1) if total else 0,
        "endpoints": endpoints,
        "slow_requests": list(performance_stats["slow_requests"]),
    }


def reset_performance_stats():
    performance_stats.clear()
    performance_stats.update(_empty_stats())

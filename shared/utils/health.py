"""
Health check utilities for Linguapress services.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.utils.redis_client import get_redis_client


class HealthStatus(Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


def _elapsed_ms(start: datetime) -> float:
    return (datetime.now() - start).total_seconds() * 1000


class HealthChecker:
    """Runs the registered dependency checks for one service."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = get_logger(f"{service_name}.health")
        self.checks: List[Callable[[], HealthCheck]] = []
        self.settings = get_settings()

    def add_check(self, check_func: Callable[[], HealthCheck]):
        self.checks.append(check_func)

    def check_database(self) -> HealthCheck:
        """Check database connectivity."""
        start_time = datetime.now()
        try:
            from shared.database.session import SessionLocal

            with SessionLocal() as session:
                session.execute(text("SELECT 1"))

            return HealthCheck(
                name="database",
                status=HealthStatus.HEALTHY,
                message="Database connection successful",
                response_time_ms=_elapsed_ms(start_time),
            )
        except Exception as e:
            return HealthCheck(
                name="database",
                status=HealthStatus.UNHEALTHY,
                message=f"Database connection failed: {str(e)}",
                response_time_ms=_elapsed_ms(start_time),
            )

    def check_redis(self) -> HealthCheck:
        """Check Redis connectivity."""
        start_time = datetime.now()
        ok = get_redis_client(self.service_name).ping()
        return HealthCheck(
            name="redis",
            status=HealthStatus.HEALTHY if ok else HealthStatus.UNHEALTHY,
            message="Redis connection successful" if ok else "Redis ping failed",
            response_time_ms=_elapsed_ms(start_time),
        )

    def check_llm(self) -> HealthCheck:
        """Check the configured chat-completion provider is reachable."""
        start_time = datetime.now()
        provider = self.settings.llm.resolve()
        try:
            import openai

            client = openai.OpenAI(api_key=provider.api_key, base_url=provider.base_url, timeout=10.0)
            client.models.list()

            return HealthCheck(
                name="llm",
                status=HealthStatus.HEALTHY,
                message=f"{provider.name} API connection successful",
                response_time_ms=_elapsed_ms(start_time),
                details={"provider": provider.name, "model": provider.model},
            )
        except Exception as e:
            return HealthCheck(
                name="llm",
                status=HealthStatus.UNHEALTHY,
                message=f"{provider.name} API connection failed: {str(e)}",
                response_time_ms=_elapsed_ms(start_time),
                details={"provider": provider.name, "model": provider.model},
            )

    def run_all_checks(self) -> Dict[str, Any]:
        """Run all registered health checks."""
        results = []
        overall_status = HealthStatus.HEALTHY

        for check_func in self.checks:
            try:
                result = check_func()
            except Exception as e:
                result = HealthCheck(
                    name=getattr(check_func, "__name__", "check"),
                    status=HealthStatus.UNHEALTHY,
                    message=f"Health check failed with exception: {str(e)}",
                )
            results.append(result)

            if result.status == HealthStatus.UNHEALTHY:
                overall_status = HealthStatus.UNHEALTHY
            elif result.status == HealthStatus.DEGRADED and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        return {
            "service": self.service_name,
            "status": overall_status.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": [
                {
                    "name": check.name,
                    "status": check.status.value,
                    "message": check.message,
                    "response_time_ms": check.response_time_ms,
                    "details": check.details,
                    "timestamp": check.timestamp.isoformat(),
                }
                for check in results
            ],
        }

    def readiness(self, critical: List[str]) -> Dict[str, Any]:
        """Ready when every critical check is healthy."""
        health_data = self.run_all_checks()
        critical_checks = [check for check in health_data["checks"] if check["name"] in critical]
        all_critical_healthy = all(check["status"] == "healthy" for check in critical_checks)
        return {
            "status": "ready" if all_critical_healthy else "not_ready",
            "service": self.service_name,
            "critical_dependencies": {check["name"]: check["status"] for check in critical_checks},
        }


def create_health_checker(service_name: str) -> HealthChecker:
    """Create a health checker for a service with common checks."""
    checker = HealthChecker(service_name)
    checker.add_check(checker.check_database)
    checker.add_check(checker.check_redis)
    return checker


def create_processor_health_checker() -> HealthChecker:
    """Create health checker for the article processor."""
    checker = create_health_checker("processor")
    checker.add_check(checker.check_llm)
    return checker

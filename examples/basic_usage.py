"""
Basic usage example for loganalytics.

Ships a few structured events to an Azure Log Analytics workspace. Set
LOGANALYTICS_SINK__WORKSPACE_ID, LOGANALYTICS_SINK__SHARED_KEY and
LOGANALYTICS_SINK__LOG_TYPE before running.
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loganalytics import LogAnalyticsSink, LogEvent


async def main() -> None:
    """Demonstrate the async sink lifecycle."""

    # Small batches and a short interval so the demo delivers quickly
    async with LogAnalyticsSink.from_settings(
        batch_size=10, flush_interval_seconds=1.0
    ) as sink:
        sink.submit(LogEvent.create("Information", "Application started"))

        sink.submit(
            LogEvent.create(
                "Information",
                "User {UserId} performed {Action}",
                UserId="12345",
                Action="login",
                Request={"ip_address": "192.168.1.1", "user_agent": "Mozilla/5.0"},
            )
        )

        try:
            1 / 0
        except ZeroDivisionError as exc:
            sink.submit(
                LogEvent.create(
                    "Error",
                    "Calculation failed for {Input}",
                    exception=exc,
                    Input=0,
                )
            )

        await sink.flush()
        print("healthy:", await sink.health_check())


if __name__ == "__main__":
    asyncio.run(main())

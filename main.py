"""
CareCall — Entry Point.

Single entry point: `python main.py` runs one scheduling tick and prints
the summary as JSON. Schedule it every minute from cron or any timer.
"""

import asyncio
import json
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.core.engine import run_tick

if __name__ == "__main__":
    summary = asyncio.run(run_tick())
    print(json.dumps(summary.to_dict(), indent=2))

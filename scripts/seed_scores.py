"""Seed reference score data (idempotent; safe to re-run).

Usage:
    python scripts/seed_scores.py
    URBANSCOPE_DB_PATH=/tmp/us.db python scripts/seed_scores.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure repository root is importable when running as script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from urbanscope.core.env_loader import load_project_env

load_project_env()

from urbanscope.services.seed_data import seed_defaults


def main() -> None:
    counts = seed_defaults()
    print(
        f"[OK] countries={counts['countries']} scores={counts['scores']} "
        f"evaluations={counts['evaluations']}"
    )


if __name__ == "__main__":
    main()

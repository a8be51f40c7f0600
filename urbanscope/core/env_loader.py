import os
from pathlib import Path

PROJECT_ENV = Path(__file__).resolve().parents[2] / ".env"


def _parse_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    # unquoted values may carry a trailing " # comment"
    return value.split(" #", 1)[0].rstrip()


def load_project_env(override: bool = False, env_path: Path | None = None) -> list[str]:
    """Load ``KEY=VALUE`` lines from the project ``.env`` into ``os.environ``.

    Variables already present in the environment win unless ``override`` is set.
    Returns the keys that were written.
    """
    env_file = env_path or PROJECT_ENV
    if not env_file.exists():
        return []

    applied: list[str] = []
    for raw_line in env_file.read_text(encoding="utf-8-sig").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, raw_value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        if override or key not in os.environ:
            os.environ[key] = _parse_value(raw_value)
            applied.append(key)
    return applied

"""Version and commit reported by the arena's /health and /status endpoints.

Deployments set APP_VERSION and GIT_COMMIT. A local checkout without them
reports the short HEAD sha, or "dev" when git is unavailable.
"""

import os
import subprocess

UNKNOWN = "dev"


def _git_short_sha() -> str:
    try:
        output = subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        )
    except (FileNotFoundError, subprocess.CalledProcessError):
        return UNKNOWN
    return output.strip() or UNKNOWN


APP_VERSION: str = os.environ.get("APP_VERSION", UNKNOWN)
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()


def build_metadata() -> dict[str, str]:
    return {"version": APP_VERSION, "commit": GIT_COMMIT}

from __future__ import annotations

import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the repository root (parent of this package) on ``sys.path``.

    Needed when this file is executed as a script
    (``python vision_trainer/__main__.py``) rather than with ``-m``.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # python -m vision_trainer
    from .app import run  # type: ignore[attr-defined]
    from .config import TrainerSettings  # type: ignore[attr-defined]
except ImportError:
    # Executed as a plain script (IDE "Run Python File", absolute path, etc.)
    _ensure_repo_root_on_path()
    from vision_trainer.app import run  # type: ignore[attr-defined]
    from vision_trainer.config import TrainerSettings  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the trainer from the command line."""
    settings = TrainerSettings.from_env()
    logging.basicConfig(
        level=settings.log_level_no,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(settings=settings)


if __name__ == "__main__":
    raise SystemExit(main())

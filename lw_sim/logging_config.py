import logging
from pathlib import Path
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from . import settings
from .event_log import session_name


def setup_logging(
    level: str = "INFO",
    component: str = "replay",
    events_path: Optional[str | Path] = None,
    base_dir: Optional[str | Path] = None,
    tz: str = "UTC",
) -> Path:
    """
    Configure logging for one tool run over one recorded session:
      - Console (stderr)
      - Daily log file in <base_dir>/<component>/<session>/YYYY-MM-DD.log

    `session` is the event log's name without `.ndjson[.gz]` ("default" without
    one), `base_dir` defaults to `LW_LOG_DIR`.

    Returns:
      Path to the "current" daily log file.
    """

    subdir = session_name(events_path) if events_path is not None else "default"
    log_dir = Path(base_dir or settings.LOG_DIR) / component / subdir
    log_dir.mkdir(parents=True, exist_ok=True)
    date_str = datetime.now(ZoneInfo(tz)).strftime("%Y-%m-%d")
    log_path = log_dir / f"{date_str}.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(fmt)
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(fh)
    root.addHandler(sh)
    logging.getLogger("lw_sim").debug("Logging to %s", log_path)
    return log_path

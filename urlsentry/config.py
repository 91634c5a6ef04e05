"""Configuration management for URL Sentry."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

import yaml
from dotenv import load_dotenv

from .constants import COMPLETION_THRESHOLD, DOMAINS_TABLE, HISTORY_LIMIT, MAX_CSV_BYTES
from .scanner.local_scorer import DEFAULT_SUSPICIOUS_TLDS

logger = logging.getLogger(__name__)

BACKENDS = ("local", "supabase")


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Backend: "local" (SQLite + in-process scorer) or "supabase"
    backend: str = "local"
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_table: str = DOMAINS_TABLE

    # Scorer webhook (required for the supabase backend)
    webhook_url: str = ""
    webhook_timeout: float = 15.0

    # Dashboard
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8080

    # Scan limits
    scan_idle_timeout: float = 120.0  # fail if no scorer progress for this long
    scan_max_duration: float = 900.0  # hard cap on one scan's wait
    completion_threshold: int = COMPLETION_THRESHOLD
    history_limit: int = HISTORY_LIMIT
    max_csv_bytes: int = MAX_CSV_BYTES

    # Local scorer
    local_scorer_delay: float = 0.5
    suspicious_tlds: Set[str] = field(default_factory=lambda: set(DEFAULT_SUSPICIOUS_TLDS))

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    def __post_init__(self):
        """Ensure paths exist."""
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self.data_dir / "urlsentry.db"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.json"


def _load_settings(config_dir: Path) -> dict:
    """Load overrides from config/settings.yaml (optional)."""
    path = Path(config_dir or ".") / "settings.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to parse settings.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings.yaml: expected a mapping")
        return {}

    scan_cfg = data.get("scan", {}) if isinstance(data.get("scan"), dict) else {}
    scorer_cfg = data.get("local_scorer", {}) if isinstance(data.get("local_scorer"), dict) else {}

    overrides: dict = {}
    for key, target, cast in (
        ("idle_timeout", "scan_idle_timeout", float),
        ("max_duration", "scan_max_duration", float),
        ("completion_threshold", "completion_threshold", int),
        ("history_limit", "history_limit", int),
        ("max_csv_bytes", "max_csv_bytes", int),
    ):
        if key in scan_cfg:
            try:
                overrides[target] = cast(scan_cfg[key])
            except (TypeError, ValueError):
                logger.warning("settings.yaml: invalid scan.%s=%r", key, scan_cfg[key])

    if "delay" in scorer_cfg:
        try:
            overrides["local_scorer_delay"] = float(scorer_cfg["delay"])
        except (TypeError, ValueError):
            logger.warning("settings.yaml: invalid local_scorer.delay=%r", scorer_cfg["delay"])
    tlds = scorer_cfg.get("suspicious_tlds")
    if isinstance(tlds, (list, set, tuple)):
        overrides["suspicious_tlds"] = {str(t).strip().lower().lstrip(".") for t in tlds if str(t).strip()}

    return overrides


def load_config() -> Config:
    """Load configuration from environment variables and settings.yaml."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    settings = _load_settings(config_dir)

    def _env_or(name: str, key: str, default: str) -> str:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value
        if key in settings:
            return str(settings[key])
        return default

    suspicious_tlds = settings.get("suspicious_tlds") or set(DEFAULT_SUSPICIOUS_TLDS)

    return Config(
        backend=os.getenv("BACKEND", "local").strip().lower() or "local",
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_key=os.getenv("SUPABASE_KEY", ""),
        supabase_table=os.getenv("SUPABASE_TABLE", DOMAINS_TABLE),
        webhook_url=os.getenv("WEBHOOK_URL", ""),
        webhook_timeout=float(os.getenv("WEBHOOK_TIMEOUT", "15")),
        dashboard_host=os.getenv("DASHBOARD_HOST", "127.0.0.1"),
        dashboard_port=int(os.getenv("DASHBOARD_PORT", "8080")),
        scan_idle_timeout=float(_env_or("SCAN_IDLE_TIMEOUT", "scan_idle_timeout", "120")),
        scan_max_duration=float(_env_or("SCAN_MAX_DURATION", "scan_max_duration", "900")),
        completion_threshold=int(settings.get("completion_threshold", COMPLETION_THRESHOLD)),
        history_limit=int(_env_or("HISTORY_LIMIT", "history_limit", str(HISTORY_LIMIT))),
        max_csv_bytes=int(_env_or("MAX_CSV_BYTES", "max_csv_bytes", str(MAX_CSV_BYTES))),
        local_scorer_delay=float(_env_or("LOCAL_SCORER_DELAY", "local_scorer_delay", "0.5")),
        suspicious_tlds=set(suspicious_tlds),
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
    )


def validate_config(config: Config) -> list[str]:
    """Validate required configuration and return list of error messages."""
    errors: list[str] = []
    if config.backend not in BACKENDS:
        errors.append(f"BACKEND must be one of: {', '.join(BACKENDS)}")

    if config.backend == "supabase":
        if not (config.supabase_url or "").strip():
            errors.append("SUPABASE_URL is required for the supabase backend")
        if not (config.supabase_key or "").strip():
            errors.append("SUPABASE_KEY is required for the supabase backend")
        if not (config.webhook_url or "").strip():
            errors.append("WEBHOOK_URL is required for the supabase backend")
    elif config.webhook_url:
        logger.info("WEBHOOK_URL is ignored with the local backend; records are scored in-process")

    if config.scan_idle_timeout <= 0 or config.scan_max_duration <= 0:
        errors.append("SCAN_IDLE_TIMEOUT and SCAN_MAX_DURATION must be positive")
    if config.completion_threshold < 1:
        errors.append("completion_threshold must be at least 1")
    if config.history_limit < 1:
        errors.append("HISTORY_LIMIT must be at least 1")

    return errors

import os
from typing import Optional
from snapedit.domain.types import AppConfig
from snapedit.features.effects.models import EffectsConfig


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    if raw.strip().lower() == "none":
        return None
    return int(raw)


def _default_cache_budget_kb() -> int:
    """
    One eighth of physical memory, 256 MB where the platform can't tell us.
    """
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
        return max(1, int(total / 1024 / 8))
    except (AttributeError, ValueError, OSError):
        return 256 * 1024


BASE_USER_DIR = os.path.abspath(os.getenv("SNAPEDIT_USER_DIR", "user"))
APP_CONFIG = AppConfig(
    preview_max_size=_env_int("SNAPEDIT_PREVIEW_MAX", 1024) or 1024,
    full_max_size=_env_int("SNAPEDIT_FULL_MAX", 2048) or 2048,
    cache_budget_kb=_env_int("SNAPEDIT_CACHE_KB", None) or _default_cache_budget_kb(),
    full_tier_max_source_pixels=_env_int("SNAPEDIT_FULL_TIER_MAX_PIXELS", 100_000_000),
    snapshot_quality=70,
    export_quality=90,
    export_dir=os.path.join(BASE_USER_DIR, "export"),
    snapshots_db_path=os.path.join(BASE_USER_DIR, "snapshots.db"),
    watermark_text="SnapEdit",
)


DEFAULT_EFFECTS = EffectsConfig()

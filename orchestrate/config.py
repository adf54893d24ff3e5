"""
Run configuration loading for bulk scrapes.

Precedence: CLI flags > run config > configs/defaults.yaml > ScrapeConfig defaults.
"""

import argparse
import json
import os
import re
from dataclasses import fields, replace
from pathlib import Path

import yaml
from dotenv import load_dotenv

from scrape.config import ScrapeConfig, SiteConfig
from scrape.errors import ConfigurationError
from scrape.ingest import IngestSettings


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULTS_FILE = PROJECT_ROOT / "configs" / "defaults.yaml"
RUNS_DIR = PROJECT_ROOT / "runs"
LOGS_DIR = RUNS_DIR / "logs"
EXECUTION_LOG = LOGS_DIR / "executions.jsonl"


def parse_time_window(s: str) -> str:
    """Parse '30m', '2h', '24h', '7d' into an f_TPR code; pass 'r<seconds>' through."""
    value = str(s).strip().lower()
    if re.match(r'^r\d+$', value):
        return value
    match = re.match(r'^(\d+)([dhm])$', value)
    if not match:
        raise ConfigurationError(f"Invalid time window: {s} (use e.g. 30m, 2h, 24h, 7d or r86400)")
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise ConfigurationError(f"Time window must be positive: {s}")
    seconds = amount * {'d': 86400, 'h': 3600, 'm': 60}[unit]
    return f"r{seconds}"


def load_run_config(path: str) -> dict:
    """Load a run configuration from JSON or YAML."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Run config not found: {path}")

    # Handle empty files (e.g., /dev/null) gracefully
    content = p.read_text(encoding="utf-8").strip()
    if not content:
        return {}

    if p.suffix.lower() in (".yaml", ".yml"):
        result = yaml.safe_load(content)
    else:
        result = json.loads(content)

    if result and not isinstance(result, dict):
        raise ConfigurationError(f"Run config must be a mapping: {path}")
    return result if result else {}


def load_default_config() -> dict:
    if not DEFAULTS_FILE.exists():
        return {}
    return load_run_config(str(DEFAULTS_FILE))


def _coerce_location_id(name: str, value) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Location id for {name!r} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ConfigurationError(f"Location id for {name!r} must be an integer, got {value!r}")


def parse_locations(raw) -> dict[str, int]:
    """
    Accept a name -> id mapping or a list of [name, id] pairs.

    Order is preserved; it drives the inner loop of the unit matrix.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        pairs = list(raw.items())
    elif isinstance(raw, list):
        pairs = []
        for entry in raw:
            if isinstance(entry, dict) and "name" in entry and "id" in entry:
                pairs.append((entry["name"], entry["id"]))
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                pairs.append((entry[0], entry[1]))
            else:
                raise ConfigurationError(f"Invalid location entry: {entry!r}")
    else:
        raise ConfigurationError("locations must be a mapping or a list of [name, id] pairs")

    locations = {}
    for name, value in pairs:
        name = str(name).strip()
        if not name:
            raise ConfigurationError("Location name cannot be empty")
        locations[name] = _coerce_location_id(name, value)
    return locations


def parse_location_arg(value: str) -> tuple[str, int]:
    """Parse a CLI 'Name=12345' location."""
    if "=" not in value:
        raise ConfigurationError(f"Location must look like NAME=ID, got {value!r}")
    name, _, raw_id = value.rpartition("=")
    name = name.strip()
    if not name:
        raise ConfigurationError(f"Location must look like NAME=ID, got {value!r}")
    return name, _coerce_location_id(name, raw_id)


def load_search_matrix(cfg: dict) -> tuple[list[str], dict[str, int]]:
    """Pull keywords and locations out of a run config."""
    keywords = cfg.get("keywords") or []
    if isinstance(keywords, str):
        keywords = [keywords]
    if not isinstance(keywords, list):
        raise ConfigurationError("keywords must be a list of strings")
    terms = [str(k).strip() for k in keywords if str(k).strip()]
    return terms, parse_locations(cfg.get("locations"))


_SCRAPE_KEYS = {f.name for f in fields(ScrapeConfig)} - {"site", "time_window", "screenshot_dir", "viewport"}
_SITE_KEYS = {f.name for f in fields(SiteConfig)}


def build_scrape_config(cfg: dict, base: ScrapeConfig | None = None) -> ScrapeConfig:
    """Build a ScrapeConfig from the 'scrape' (and 'site') sections of a run config."""
    config = base or ScrapeConfig()
    section = cfg.get("scrape") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("'scrape' section must be a mapping")

    unknown = set(section) - _SCRAPE_KEYS - {"time_window", "screenshot_dir", "viewport"}
    if unknown:
        raise ConfigurationError(f"Unknown scrape settings: {', '.join(sorted(unknown))}")

    overrides = {k: v for k, v in section.items() if k in _SCRAPE_KEYS}
    for key in ("launch_args", "disconnect_markers"):
        if key in overrides:
            overrides[key] = tuple(overrides[key])
    if "time_window" in section:
        overrides["time_window"] = parse_time_window(section["time_window"])
    if section.get("screenshot_dir"):
        overrides["screenshot_dir"] = Path(section["screenshot_dir"])
    if "viewport" in section:
        width, height = section["viewport"]
        overrides["viewport"] = (int(width), int(height))

    site_section = cfg.get("site") or {}
    if site_section:
        unknown_site = set(site_section) - _SITE_KEYS
        if unknown_site:
            raise ConfigurationError(f"Unknown site settings: {', '.join(sorted(unknown_site))}")
        overrides["site"] = replace(config.site, **site_section)

    config = replace(config, **overrides)
    if config.min_delay_sec < 0 or config.max_delay_sec < config.min_delay_sec:
        raise ConfigurationError(
            f"Invalid delay window: [{config.min_delay_sec}, {config.max_delay_sec}]"
        )
    return config


def apply_cli_overrides(config: ScrapeConfig, args: argparse.Namespace, provided_flags: set[str]) -> ScrapeConfig:
    """Apply explicitly passed CLI flags on top of the config-file result."""
    overrides = {}
    if "time_window" in provided_flags and args.time_window:
        overrides["time_window"] = parse_time_window(args.time_window)
    if "no_headless" in provided_flags:
        overrides["headless"] = not args.no_headless
    if "min_delay" in provided_flags:
        overrides["min_delay_sec"] = args.min_delay
    if "max_delay" in provided_flags:
        overrides["max_delay_sec"] = args.max_delay
    if "memory_ceiling_mb" in provided_flags:
        overrides["memory_ceiling_mb"] = args.memory_ceiling_mb
    if "screenshot_dir" in provided_flags and args.screenshot_dir:
        overrides["screenshot_dir"] = Path(args.screenshot_dir)
    if "no_screenshots" in provided_flags:
        overrides["take_screenshots"] = not args.no_screenshots
    if not overrides:
        return config

    config = replace(config, **overrides)
    if config.min_delay_sec < 0 or config.max_delay_sec < config.min_delay_sec:
        raise ConfigurationError(
            f"Invalid delay window: [{config.min_delay_sec}, {config.max_delay_sec}]"
        )
    return config


def load_ingest_settings(env_file: str | None = None) -> IngestSettings:
    """Read ingest credentials from the environment, loading .env first."""
    if env_file:
        if not Path(env_file).exists():
            raise FileNotFoundError(f"Env file not found: {env_file}")
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)
    timeout = float(os.environ.get("INGEST_TIMEOUT_SEC", "30"))
    return IngestSettings.from_env(timeout=timeout)

"""
Orchestration helpers for the bulk scrape CLI.

Run-config loading lives in config, output and execution logging in
presenter, the HTTP service in server.
"""

from .config import (
    parse_time_window,
    load_run_config,
    load_default_config,
    parse_locations,
    parse_location_arg,
    load_search_matrix,
    build_scrape_config,
    apply_cli_overrides,
    load_ingest_settings,
    PROJECT_ROOT,
    DEFAULTS_FILE,
    RUNS_DIR,
    LOGS_DIR,
    EXECUTION_LOG,
)
from .presenter import (
    summary_as_dict,
    print_summary,
    write_summary_json,
    build_log_entry,
    append_execution_log,
)

__all__ = [
    "parse_time_window",
    "load_run_config",
    "load_default_config",
    "parse_locations",
    "parse_location_arg",
    "load_search_matrix",
    "build_scrape_config",
    "apply_cli_overrides",
    "load_ingest_settings",
    "PROJECT_ROOT",
    "DEFAULTS_FILE",
    "RUNS_DIR",
    "LOGS_DIR",
    "EXECUTION_LOG",
    "summary_as_dict",
    "print_summary",
    "write_summary_json",
    "build_log_entry",
    "append_execution_log",
]

"""
Central configuration for the mill order tools.

All paths, defaults and API settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/order_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR          = PROJECT_ROOT / "output"
DEFAULT_DB_PATH             = DEFAULT_OUTPUT_DIR / "orders.db"
DEFAULT_FILTERS_FILE        = DEFAULT_OUTPUT_DIR / "filters.json"
DEFAULT_ROLES_FILE          = PROJECT_ROOT / "config" / "roles.json"
DEFAULT_QUICK_PRODUCTS_FILE = PROJECT_ROOT / "data" / "quick_products.json"


@dataclass
class Config:
    # --- Local storage ---
    output_dir: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    db_path:    Path = field(
        default_factory=lambda: Path(os.getenv("ORDERS_DB_PATH", str(DEFAULT_DB_PATH)))
    )
    filters_file: Path = field(
        default_factory=lambda: Path(os.getenv("FILTERS_FILE", str(DEFAULT_FILTERS_FILE)))
    )

    # --- Remote order API ---
    # When api_base_url is set the CLI talks to the REST API instead of the
    # local SQLite database.
    api_base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("ORDERS_API_URL") or None
    )
    api_token: Optional[str] = field(
        default_factory=lambda: os.getenv("ORDERS_API_TOKEN") or None
    )
    api_timeout: float = field(
        default_factory=lambda: float(os.getenv("ORDERS_API_TIMEOUT", "30"))
    )

    # --- Roles & catalog ---
    roles_file: Path = field(
        default_factory=lambda: Path(os.getenv("ROLES_FILE", str(DEFAULT_ROLES_FILE)))
    )
    quick_products_file: Path = field(
        default_factory=lambda: Path(os.getenv("QUICK_PRODUCTS_FILE", str(DEFAULT_QUICK_PRODUCTS_FILE)))
    )
    default_role: str = field(
        default_factory=lambda: os.getenv("ORDERS_ROLE", "manager")
    )

    # --- Pricing defaults ---
    default_tax_percentage: Decimal = field(
        default_factory=lambda: Decimal(os.getenv("DEFAULT_TAX_PERCENTAGE", "0"))
    )
    currency_symbol: str = field(
        default_factory=lambda: os.getenv("CURRENCY_SYMBOL", "₹")
    )
    pretty_json: bool = True        # Indent JSON output for human readability

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from order_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "order_settings.json"
        if not settings_file.exists():
            return
        # setting -> (type, environment variable that takes precedence)
        _type_map: dict[str, tuple[type, Optional[str]]] = {
            "api_base_url":            (str,     "ORDERS_API_URL"),
            "api_timeout":             (float,   "ORDERS_API_TIMEOUT"),
            "default_role":            (str,     "ORDERS_ROLE"),
            "default_tax_percentage":  (Decimal, "DEFAULT_TAX_PERCENTAGE"),
            "currency_symbol":         (str,     "CURRENCY_SYMBOL"),
            "pretty_json":             (bool,    None),
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map or not hasattr(self, key):
                    continue
                cast, env_name = _type_map[key]
                if env_name and os.getenv(env_name):
                    continue
                setattr(self, key, cast(str(val)) if cast is Decimal else cast(val))
        except Exception as exc:
            logger.warning("Failed to load order_settings.json: %s", exc)

    @property
    def uses_api(self) -> bool:
        return bool(self.api_base_url)

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

"""
Central configuration for the BrokerPro billing core.

All paths and financial defaults are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/billing_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "brokerpro.db"

# Commission applied to sales invoices when neither the caller nor the
# stored record supplies a rate (percent, i.e. 5.5 means 5.5%).
DEFAULT_COMMISSION_RATE = 5.5
DEFAULT_PAYMENT_TERMS = "Net 30"

# Shipping estimate used when a shipping invoice has no freight charge
FREIGHT_RATE_PER_KG = 0.5
FREIGHT_RATE_PER_CUBIC_METRE = 100.0


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Document defaults ---
    default_commission_rate: float = field(
        default_factory=lambda: float(
            os.getenv("DEFAULT_COMMISSION_RATE", str(DEFAULT_COMMISSION_RATE))
        )
    )
    default_payment_terms: str = field(
        default_factory=lambda: os.getenv("DEFAULT_PAYMENT_TERMS", DEFAULT_PAYMENT_TERMS)
    )

    # --- Consistency checks ---
    arithmetic_tolerance: float = 0.01  # $0.01 drift tolerated between stored and recomputed totals

    # --- Shipping estimate ---
    freight_rate_per_kg:          float = FREIGHT_RATE_PER_KG
    freight_rate_per_cubic_metre: float = FREIGHT_RATE_PER_CUBIC_METRE

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from billing_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "billing_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "default_commission_rate":      float,
            "default_payment_terms":        str,
            "arithmetic_tolerance":         float,
            "freight_rate_per_kg":          float,
            "freight_rate_per_cubic_metre": float,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Failed to load billing_settings.json: %s", exc)

    def ensure_data_dir(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

"""
CSV Import Configuration Module

Loads import limits and matching settings from csv_import.yaml, with
environment variable overrides.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "csv_import.yaml"

DEFAULT_PROCESSOR_PREFIXES = ["PAYPAL *", "KLARNA*", "DD *"]


@dataclass
class ImportSettings:
    """Limits and thresholds used across the import pipeline."""

    max_file_bytes: int = 5 * 1024 * 1024
    max_amount: Decimal = Decimal("100000000")
    max_description_length: int = 100
    similarity_threshold: int = 80
    amount_tolerance: Decimal = Decimal("0.01")
    idempotency_ttl_hours: int = 24
    processor_prefixes: list[str] = field(
        default_factory=lambda: list(DEFAULT_PROCESSOR_PREFIXES)
    )

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "ImportSettings":
        """Load settings from YAML, falling back to defaults.

        Args:
            config_path: Path to csv_import.yaml

        Returns:
            ImportSettings instance
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        data: dict = {}

        if config_path.exists():
            with open(config_path) as f:
                data = (yaml.safe_load(f) or {}).get("csv_import", {})
        else:
            logger.info(f"Import config not found at {config_path}, using defaults")

        settings = cls()

        if "max_file_mb" in data:
            settings.max_file_bytes = int(float(data["max_file_mb"]) * 1024 * 1024)
        if "max_amount" in data:
            settings.max_amount = Decimal(str(data["max_amount"]))
        if "max_description_length" in data:
            settings.max_description_length = int(data["max_description_length"])
        if "similarity_threshold" in data:
            settings.similarity_threshold = int(data["similarity_threshold"])
        if "amount_tolerance" in data:
            settings.amount_tolerance = Decimal(str(data["amount_tolerance"]))
        if "idempotency_ttl_hours" in data:
            settings.idempotency_ttl_hours = int(data["idempotency_ttl_hours"])
        if data.get("processor_prefixes"):
            settings.processor_prefixes = [str(p) for p in data["processor_prefixes"]]

        settings._apply_env_overrides()
        return settings

    def _apply_env_overrides(self) -> None:
        """Apply CSV_IMPORT_* environment variables."""
        if os.getenv("CSV_IMPORT_MAX_FILE_BYTES"):
            self.max_file_bytes = int(os.environ["CSV_IMPORT_MAX_FILE_BYTES"])
        if os.getenv("CSV_IMPORT_SIMILARITY_THRESHOLD"):
            self.similarity_threshold = int(os.environ["CSV_IMPORT_SIMILARITY_THRESHOLD"])
        if os.getenv("CSV_IMPORT_IDEMPOTENCY_TTL_HOURS"):
            self.idempotency_ttl_hours = int(os.environ["CSV_IMPORT_IDEMPOTENCY_TTL_HOURS"])

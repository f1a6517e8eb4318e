"""Rate library loader for the net metering engine.

Loads published electricity price lists from JSON files and turns them into
RateRegistry objects the engine can calculate against. Each library
overrides the period rates of the compiled-in plans and, optionally, the
tier schedule.
"""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List

from netmeter.models.rate_plans import (
    DEFAULT_REGISTRY,
    PLAN_TIERED,
    TIERED,
    RateRegistry,
    TierSchedule,
    resolve_plan_id,
)

logger = logging.getLogger(__name__)


def _get_resource_path(relative_path: str) -> Path:
    """Get absolute path to resource, works for dev and for PyInstaller."""
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        base_path = Path(sys._MEIPASS)
    else:
        base_path = Path(__file__).resolve().parent.parent.parent
    return base_path / relative_path


_DEFAULT_LIBRARY_DIR = _get_resource_path("resources/rate_libraries")


class RateLibrary:
    """Manages loading and applying rate libraries.

    Scans a directory for JSON price lists keyed by their "name" field.

    Args:
        library_dir: Path to directory containing library JSON files.
            Defaults to resources/rate_libraries/.
    """

    def __init__(self, library_dir: str = ""):
        self.library_dir = Path(library_dir) if library_dir else _DEFAULT_LIBRARY_DIR
        self._libraries: Dict[str, dict] = {}
        self._load_all()

    def _load_all(self) -> None:
        if not self.library_dir.exists():
            logger.debug("Rate library directory %s does not exist", self.library_dir)
            return
        for path in sorted(self.library_dir.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                logger.warning("Skipping unreadable rate library %s: %s", path.name, e)
                continue
            key = data.get("name", path.stem)
            self._libraries[key] = data

    def get_library_names(self) -> List[str]:
        """Return sorted list of available library names."""
        return sorted(self._libraries.keys())

    def get_library_metadata(self, name: str) -> Dict[str, str]:
        """Return metadata for a library.

        Args:
            name: Library name as returned by get_library_names().

        Returns:
            Dict with keys: source, version, date_published, url, notes.
        """
        lib = self._libraries.get(name, {})
        return {
            "source": lib.get("source", ""),
            "version": lib.get("version", ""),
            "date_published": lib.get("date_published", ""),
            "url": lib.get("url", ""),
            "notes": lib.get("notes", ""),
        }

    def build_registry(self, library_name: str, base: RateRegistry = DEFAULT_REGISTRY) -> RateRegistry:
        """Build a registry with a library's rates applied.

        The base registry is left untouched; plans missing from the library
        keep their base rates.

        Args:
            library_name: Name of the library to apply.
            base: Registry supplying the period structure and fallback rates.

        Returns:
            New RateRegistry named after the library.

        Raises:
            KeyError: If library_name is not found.
            ValueError: If the library names an unknown plan or a negative rate.
        """
        if library_name not in self._libraries:
            raise KeyError(f"Library '{library_name}' not found. Available: {self.get_library_names()}")

        lib = self._libraries[library_name]
        effective_date = lib.get("effective_date", "")
        plans = dict(base.plans)
        for plan_id, rates in lib.get("plans", {}).items():
            key = resolve_plan_id(plan_id)
            plans[key] = base.get(key).with_rates(rates)
            if effective_date:
                plans[key] = replace(plans[key], effective_date=effective_date)

        tiers = base.tiers
        tier_data = lib.get("tiers")
        if tier_data:
            tiers = TierSchedule(
                tier1_rate=tier_data.get("tier1_rate", base.tiers.tier1_rate),
                tier2_rate=tier_data.get("tier2_rate", base.tiers.tier2_rate),
                tier1_threshold_kwh=tier_data.get("tier1_threshold_kwh", base.tiers.tier1_threshold_kwh),
                export_adder=tier_data.get("export_adder", base.tiers.export_adder),
            )
            # Nominal period rates of the tiered plan follow the first tier
            plans[PLAN_TIERED] = plans[PLAN_TIERED].with_rates({
                TIERED: {"import_rate": tiers.tier1_rate,
                         "export_rate": tiers.tier1_rate + tiers.export_adder},
            })
            if effective_date:
                plans[PLAN_TIERED] = replace(plans[PLAN_TIERED], effective_date=effective_date)

        logger.debug("Built rate registry from library '%s'", library_name)
        return RateRegistry(plans=plans, tiers=tiers, name=library_name)

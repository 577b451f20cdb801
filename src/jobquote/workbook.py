"""Load a pricing workbook (settings, job types, catalog, estimate) from disk."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .catalog import InMemoryCatalog
from .models import AdminRule, Assembly, CompanySettings, Estimate, JobTypePolicy, Material
from .settings import normalize_admin_rules, normalize_company_settings, normalize_job_types

logger = logging.getLogger(__name__)


class Workbook(BaseModel):
    """Everything needed to price one estimate, already normalized."""

    settings: CompanySettings
    job_types: List[JobTypePolicy] = Field(default_factory=list)
    materials: List[Material] = Field(default_factory=list)
    assemblies: List[Assembly] = Field(default_factory=list)
    admin_rules: List[AdminRule] = Field(default_factory=list)
    estimate: Optional[Estimate] = None
    source_path: Optional[str] = None

    class Config:
        frozen = True

    def catalog(self) -> InMemoryCatalog:
        return InMemoryCatalog(self.materials, self.assemblies)

    def find_job_type(self, job_type_id: str) -> Optional[JobTypePolicy]:
        for job_type in self.job_types:
            if job_type.id == job_type_id:
                return job_type
        return None


def parse_workbook(data: Dict[str, Any], source_path: Optional[str] = None) -> Workbook:
    """Build a Workbook from an already-parsed document.

    Raises:
        pydantic.ValidationError: If a record is structurally invalid
    """
    data = data or {}
    return Workbook(
        settings=normalize_company_settings(data.get("settings") or data.get("company_settings")),
        job_types=normalize_job_types(data.get("job_types")),
        materials=[Material(**m) for m in data.get("materials") or []],
        assemblies=[Assembly(**a) for a in data.get("assemblies") or []],
        admin_rules=normalize_admin_rules(data.get("admin_rules")),
        estimate=Estimate(**data["estimate"]) if data.get("estimate") else None,
        source_path=source_path,
    )


def load_workbook(path: Path) -> Workbook:
    """Load a workbook from a YAML or JSON file.

    Args:
        path: Path to ``.yaml``/``.yml`` or ``.json`` file

    Returns:
        Normalized Workbook

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If a YAML file is invalid
        json.JSONDecodeError: If a JSON file is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")

    logger.debug(f"Loading workbook from {path}")

    with open(path, "r") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    workbook = parse_workbook(data or {}, source_path=str(path))
    logger.info(
        f"Workbook loaded: {len(workbook.materials)} materials, {len(workbook.assemblies)} assemblies, "
        f"{len(workbook.job_types)} job types"
    )
    return workbook

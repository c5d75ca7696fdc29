"""
Civil service organizational structure.

Core directorates report to the Chief Director through their Director.
Independent supporting units have no directorate and report straight to the
Chief Director. HRMD staff are routed through the HR Director.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

HRMD_DIRECTORATE = "Human Resource Management & Development Directorate (HRMD)"
PPBME_DIRECTORATE = "Policy, Planning, Budgeting, Monitoring & Evaluation Directorate (PPBME)"
RSIMD_DIRECTORATE = "Research, Statistics & Information Management Directorate (RSIMD)"
FA_DIRECTORATE = "Finance & Administration Directorate (F&A)"


@dataclass(frozen=True)
class UnitConfig:
    unit: str
    directorate: Optional[str]  # None: independent unit, reports to the Chief Director
    sub_unit: Optional[str] = None
    independent: bool = False
    hrmd: bool = False


CIVIL_SERVICE_UNITS: Tuple[UnitConfig, ...] = (
    # PPBME
    UnitConfig("Policy Coordination Unit", PPBME_DIRECTORATE),
    UnitConfig("Planning & Budgeting Unit", PPBME_DIRECTORATE),
    UnitConfig("Monitoring & Evaluation Unit", PPBME_DIRECTORATE),
    UnitConfig("Fisheries Management & Aquaculture Development Unit", PPBME_DIRECTORATE, "Culture & Capture Fisheries Sub-Unit"),
    UnitConfig("Fisheries Management & Aquaculture Development Unit", PPBME_DIRECTORATE, "Post-Harvest & Marketing Sub-Unit"),
    # RSIMD
    UnitConfig("Research & Statistics Unit", RSIMD_DIRECTORATE),
    UnitConfig("Information Technology & Information Management Unit", RSIMD_DIRECTORATE),
    UnitConfig("Documentation / Library Unit", RSIMD_DIRECTORATE),
    # HRMD
    UnitConfig("Human Resource Planning Unit", HRMD_DIRECTORATE, hrmd=True),
    UnitConfig("Training & Development Unit", HRMD_DIRECTORATE, hrmd=True),
    UnitConfig("Performance Management Unit", HRMD_DIRECTORATE, hrmd=True),
    UnitConfig("Personnel / Records Unit", HRMD_DIRECTORATE, hrmd=True),
    # F&A
    UnitConfig("Administration Unit", FA_DIRECTORATE),
    UnitConfig("Finance / Accounts Unit", FA_DIRECTORATE),
    UnitConfig("Treasury / Payments Unit", FA_DIRECTORATE),
    UnitConfig("Procurement & Stores Unit", FA_DIRECTORATE),
    UnitConfig("Transport Unit", FA_DIRECTORATE),
    UnitConfig("Estates / Facilities Unit", FA_DIRECTORATE),
    UnitConfig("Records / Registry Unit", FA_DIRECTORATE),
    UnitConfig("Protocol & Security Unit", FA_DIRECTORATE),
    UnitConfig("Resource Mobilization / Donor Coordination Unit", FA_DIRECTORATE),
    # Independent supporting units
    UnitConfig("Internal Audit Unit", None, independent=True),
    UnitConfig("Legal Unit", None, independent=True),
    UnitConfig("Public Relations / Communications Unit", None, independent=True),
    UnitConfig("Right to Information (RTI) Unit", None, independent=True),
    UnitConfig("Client Service Unit", None, independent=True),
)

# Units whose heads need an acting officer before leave is approved
CRITICAL_UNITS = frozenset({"Internal Audit Unit", "Legal Unit"})


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def get_unit_config(unit: Optional[str], sub_unit: Optional[str] = None) -> Optional[UnitConfig]:
    """
    Find the configuration for a unit name (case-insensitive, tolerant of
    abbreviated or extended names).
    """
    if _blank(unit):
        return None
    name = unit.strip().lower()
    for config in CIVIL_SERVICE_UNITS:
        candidate = config.unit.lower()
        if not (candidate == name or candidate in name or name in candidate):
            continue
        if sub_unit and config.sub_unit:
            sub = sub_unit.strip().lower()
            wanted = config.sub_unit.lower()
            if wanted == sub or wanted in sub or sub in wanted:
                return config
            continue
        if not sub_unit:
            return config
    return None


def is_independent_unit(unit: Optional[str]) -> bool:
    config = get_unit_config(unit)
    return config is not None and (config.independent or config.directorate is None)


def is_hrmd(unit: Optional[str], directorate: Optional[str] = None) -> bool:
    config = get_unit_config(unit)
    if config is not None and (config.hrmd or config.directorate == HRMD_DIRECTORATE):
        return True
    for value in (unit, directorate):
        if not _blank(value):
            lowered = value.lower()
            if "human resource management" in lowered or "hrmd" in lowered:
                return True
    return False


def directorate_for(unit: Optional[str], directorate: Optional[str] = None) -> Optional[str]:
    """Directorate from the unit map, falling back to the recorded directorate."""
    config = get_unit_config(unit)
    if config is not None:
        return config.directorate
    return None if _blank(directorate) else directorate.strip()


def is_chief_director_position(position: Optional[str], grade: Optional[str]) -> bool:
    return any(not _blank(v) and "chief director" in v.lower() for v in (position, grade))


def is_director_position(position: Optional[str], grade: Optional[str]) -> bool:
    """Directors, deputy directors and the Chief Director."""
    return any(not _blank(v) and "director" in v.lower() for v in (position, grade))


def is_unit_head_position(position: Optional[str]) -> bool:
    if _blank(position):
        return False
    lowered = position.lower()
    return "unit head" in lowered or "head of unit" in lowered or "unit manager" in lowered


def is_head_of_independent_unit(position: Optional[str], unit: Optional[str]) -> bool:
    if _blank(position) or not is_independent_unit(unit):
        return False
    return is_unit_head_position(position) or "head of" in position.lower()


def requires_acting_officer(position: Optional[str], grade: Optional[str], unit: Optional[str]) -> bool:
    config = get_unit_config(unit)
    return (
        is_unit_head_position(position)
        or is_director_position(position, grade)
        or (config is not None and config.unit in CRITICAL_UNITS and not _blank(position) and "head" in position.lower())
    )

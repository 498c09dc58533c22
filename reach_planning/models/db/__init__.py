from .enums import IssueSeverity, SessionStatus, JobState, TemplateId
from .geography import SubRegion, Country
from .taxonomy import BusinessUnit, Category, Range, Campaign, category_ranges
from .media import MediaType, MediaSubType, PMType
from .cycles import FinancialCycle
from .game_plans import GamePlan
from .sufficiency import SufficiencyRecord
from .import_sessions import ImportSession

__all__ = [
    "IssueSeverity",
    "SessionStatus",
    "JobState",
    "TemplateId",
    "SubRegion",
    "Country",
    "BusinessUnit",
    "Category",
    "Range",
    "Campaign",
    "category_ranges",
    "MediaType",
    "MediaSubType",
    "PMType",
    "FinancialCycle",
    "GamePlan",
    "SufficiencyRecord",
    "ImportSession",
]

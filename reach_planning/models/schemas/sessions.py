"""
Pydantic schemas for import sessions, validation responses and import progress.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import Field, ConfigDict
from .base import WireModel
from .validation import ValidationIssue, ValidationSummary
from ..db.enums import SessionStatus

class ImportProgress(WireModel):
    """Progress is always this structured object, never a bare number."""
    current: int = Field(0, ge=0)
    total: int = Field(0, ge=0)
    percentage: int = Field(0, ge=0, le=100)
    stage: str = "Pending"

class ImportErrorEntry(WireModel):
    """Row-level import failure; ``index`` is -1 for a fatal run error."""
    index: int
    error: str
    campaign: Optional[str] = None
    media_subtype: Optional[str] = Field(None, alias="mediaSubtype")

class ImportResults(WireModel):
    ranges_count: int = Field(0, alias="rangesCount")
    media_subtypes_count: int = Field(0, alias="mediaSubtypesCount")
    pm_types_count: int = Field(0, alias="pmTypesCount")
    campaigns_count: int = Field(0, alias="campaignsCount")
    game_plans_count: int = Field(0, alias="gamePlansCount")
    sufficiency_count: int = Field(0, alias="sufficiencyCount")
    successful_rows: List[int] = Field(default_factory=list, alias="successfulRows")
    failed_rows: List[int] = Field(default_factory=list, alias="failedRows")

class ImportOutcome(WireModel):
    """Canonical result of one import run."""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    successful_rows: List[int] = Field(default_factory=list, alias="successfulRows")
    failed_rows: List[int] = Field(default_factory=list, alias="failedRows")
    errors: List[ImportErrorEntry] = Field(default_factory=list)
    errors_by_type: Dict[str, int] = Field(default_factory=dict, alias="errorsByType")
    results: ImportResults = Field(default_factory=ImportResults)

class SessionCreate(WireModel):
    records: List[Dict[str, Any]] = Field(description="Parsed upload rows keyed by column header")
    template: str = Field("reach_planning", description="Validation template id: game_plans | reach_planning")
    country_id: Optional[int] = Field(None, alias="countryId")
    financial_cycle_id: Optional[int] = Field(None, alias="financialCycleId")
    session_id: Optional[str] = Field(None, alias="sessionId", description="Generated when omitted")

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={
        "example": {
            "template": "reach_planning",
            "countryId": 1,
            "financialCycleId": 3,
            "records": [
                {"Last Update": "FC05 2025", "Sub Region": "DACH", "Country": "Germany",
                 "Category": "Deo", "Range": "Black & White", "Campaign": "Black & White"}
            ]
        }
    })

class SessionIdRequest(WireModel):
    session_id: str = Field(alias="sessionId", min_length=1)

class SessionRead(WireModel):
    session_id: str = Field(alias="sessionId")
    template: str
    status: SessionStatus
    country_id: Optional[int] = Field(None, alias="countryId")
    financial_cycle_id: Optional[int] = Field(None, alias="financialCycleId")
    record_count: int = Field(0, alias="recordCount")
    validation_summary: Optional[ValidationSummary] = Field(None, alias="validationSummary")
    import_progress: Optional[ImportProgress] = Field(None, alias="importProgress")
    import_errors: List[ImportErrorEntry] = Field(default_factory=list, alias="importErrors")
    import_results: Optional[ImportResults] = Field(None, alias="importResults")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    validated_at: Optional[datetime] = Field(None, alias="validatedAt")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

class ValidateResponse(WireModel):
    success: bool = True
    session_id: str = Field(alias="sessionId")
    summary: ValidationSummary
    issues: List[ValidationIssue]
    field_mapping: Dict[str, str] = Field(alias="fieldMapping")
    can_import: bool = Field(alias="canImport")

class ImportTriggerResponse(WireModel):
    message: str = "Import process started"
    session_id: str = Field(alias="sessionId")
    job_id: Optional[str] = Field(None, alias="jobId")

class ProgressResponse(WireModel):
    progress: ImportProgress
    status: SessionStatus
    errors: Optional[List[ImportErrorEntry]] = None
    results: Optional[ImportResults] = None

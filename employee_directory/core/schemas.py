from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional


ParseStatus = Literal["array", "wrapper", "unrecognized", "invalid_json", "empty"]
UpsertOutcome = Literal["created", "skipped", "failed", "empty"]
SkillLevel = Literal["Basic", "Average", "Good", "Excellent"]


class JobExperienceRecord(BaseModel):
    """One job-history entry as emitted by the model.

    Accepts the display keys the prompt asks for ("Company", "Start Date", ...)
    as well as the older prompt's keys and snake/camel case variants.
    Serialize with ``by_alias=True, exclude_none=True`` to get the display keys back.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    company: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("Company", "company", "Company Name", "company_name"),
        serialization_alias="Company",
    )
    role: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "Role", "role", "Role Held at the Company", "Title", "title", "job_title", "jobTitle"
        ),
        serialization_alias="Role",
    )
    start_date: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("Start Date", "start_date", "startDate"),
        serialization_alias="Start Date",
    )
    end_date: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("End Date", "end_date", "endDate"),
        serialization_alias="End Date",
    )
    years_worked: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "Years Worked", "Years Worked There", "years_worked", "yearsWorked"
        ),
        serialization_alias="Years Worked",
    )
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "Description", "Brief Description", "description", "summary"
        ),
        serialization_alias="Description",
    )

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_text(cls, value: Any) -> Optional[str]:
        # Models occasionally emit years as numbers or lists of bullet strings
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(str(v) for v in value if v is not None)
        text = str(value).strip()
        return text or None

    def is_blank(self) -> bool:
        return not any(
            (self.company, self.role, self.start_date, self.end_date, self.years_worked, self.description)
        )

    def to_display(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ApiModel(BaseModel):
    """Response/request body: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(populate_by_name=True)


class SectionInfo(ApiModel):
    start: int
    end: int
    heading_found: bool = Field(..., alias="headingFound")
    boundary: str


class BatchResult(ApiModel):
    index: int
    size: int
    success: bool
    record_ids: List[str] = Field(default_factory=list, alias="recordIds")
    status_code: Optional[int] = Field(default=None, alias="statusCode")
    error: Optional[Any] = None


class UpsertStatus(ApiModel):
    success: bool
    status: UpsertOutcome
    message: str
    per_batch_results: List[BatchResult] = Field(default_factory=list, alias="perBatchResults")
    failed_batch_index: Optional[int] = Field(default=None, alias="failedBatchIndex")
    skipped_duplicates: int = Field(default=0, alias="skippedDuplicates")


class ImportResponse(ApiModel):
    job_experiences: List[Dict[str, str]] = Field(default_factory=list)
    extracted_text: str = Field(default="", alias="extractedText")
    extracted_text_length: int = Field(..., alias="extractedTextLength")
    section: Optional[SectionInfo] = None
    parse_status: ParseStatus = Field(..., alias="parseStatus")
    airtable_save_status: UpsertStatus = Field(..., alias="airtableSaveStatus")


class OcrRequest(ApiModel):
    base64_pdf_data: Optional[str] = Field(default=None, alias="base64PdfData")


class OcrResponse(ApiModel):
    extracted_text: str = Field(..., alias="extractedText")


class WorkExperienceResponse(ApiModel):
    extracted_text: str = Field(..., alias="extractedText")
    work_experience: List[Dict[str, str]] = Field(default_factory=list, alias="workExperience")


class ErrorBody(ApiModel):
    error: str
    details: Optional[str] = None


class EmployeeSummary(ApiModel):
    id: str
    name: Optional[str] = None
    job_title: Optional[str] = Field(default=None, alias="jobTitle")
    department: Optional[str] = None
    location: Optional[str] = None


class WorkExperienceEntry(ApiModel):
    id: str
    company: Optional[str] = None
    role: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    description: Optional[str] = None


class SkillLevelEntry(ApiModel):
    skill_id: Optional[str] = Field(default=None, alias="skillId")
    name: str
    level: Optional[SkillLevel] = None


class EmployeeProfile(ApiModel):
    employee: EmployeeSummary
    bio: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")
    work_experience: List[WorkExperienceEntry] = Field(default_factory=list, alias="workExperience")
    skills: List[SkillLevelEntry] = Field(default_factory=list)
    traits: List[str] = Field(default_factory=list)

"""All built-in tool definitions and their parameter schemas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolName(str, Enum):
    # Utility
    GET_WEATHER = "get_weather"
    CALCULATE = "calculate"

    # Flights
    SEARCH_FLIGHTS = "search_flights"
    BOOK_FLIGHT = "book_flight"

    # Jobs
    SEARCH_JOBS = "search_jobs"
    APPLY_JOB = "apply_job"
    GENERATE_COVER_LETTER = "generate_cover_letter"

    # Forms
    FILL_FORM = "fill_form"
    ANALYZE_FORM = "analyze_form"

    # Social
    POST_SOCIAL = "post_social"
    SCHEDULE_POST = "schedule_post"
    GENERATE_CAPTION = "generate_caption"

    # Browser
    BROWSER_ACTION = "browser_action"
    NAVIGATE_TO = "navigate_to"
    EXTRACT_DATA = "extract_data"
    TAKE_SCREENSHOT = "take_screenshot"

    # Verification
    VALIDATE_RESULTS = "validate_results"
    CHECK_COMPLETION = "check_completion"
    VERIFY_BOOKING = "verify_booking"


@dataclass(frozen=True)
class ToolDefinition:
    """Canonical tool definition. Read-only after import."""

    name: str
    description: str
    category: str  # utility | flight | job | form | social | browser | validation
    parameter_schema: type[BaseModel]
    requires_auth: bool = False
    is_async: bool = True

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the parameters, for prompts and the API."""
        return self.parameter_schema.model_json_schema()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": self.parameters,
            "requires_auth": self.requires_auth,
            "is_async": self.is_async,
        }


Platform = Literal["instagram", "twitter", "facebook", "linkedin"]

# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------


class GetWeatherParams(BaseModel):
    location: str = Field(min_length=1, description="City name or location")
    units: Literal["celsius", "fahrenheit"] = "celsius"


class CalculateParams(BaseModel):
    expression: str = Field(min_length=1, description="Arithmetic expression, e.g. '10 * 5 + 3'")


# ---------------------------------------------------------------------------
# Flights
# ---------------------------------------------------------------------------


class SearchFlightsParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    origin: str = Field(alias="from", description="Departure airport code or city")
    to: str = Field(description="Destination airport code or city")
    date: str = Field(description="Departure date (YYYY-MM-DD)")
    return_date: str | None = None
    passengers: int = Field(default=1, ge=1)
    cabin_class: Literal["economy", "premium_economy", "business", "first"] = Field(
        default="economy", alias="class"
    )
    budget: float | None = None


class Passenger(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: str | None = None
    passport_number: str | None = None


class BookFlightParams(BaseModel):
    flight_option_id: str = Field(min_length=1, description="Selected flight option ID")
    passengers: list[Passenger]
    payment_method_id: str | None = None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class SearchJobsParams(BaseModel):
    query: str
    location: str | None = None
    remote: bool | None = None
    experience_level: Literal["entry", "mid", "senior", "lead"] | None = None


class ApplyJobParams(BaseModel):
    job_url: str = Field(min_length=1, description="Job posting URL")
    job_title: str | None = None
    company: str | None = None
    resume_id: str | None = None
    cover_letter: str | None = None
    answers: dict[str, str] | None = None


class GenerateCoverLetterParams(BaseModel):
    job_title: str
    company: str
    job_description: str | None = None
    resume_id: str | None = None
    tone: Literal["professional", "enthusiastic", "creative"] = "professional"


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


class FillFormParams(BaseModel):
    url: str = Field(min_length=1, description="Form URL")
    fields: dict[str, str] | None = None
    files: dict[str, str] | None = None
    submit_form: bool = True


class AnalyzeFormParams(BaseModel):
    url: str = Field(min_length=1)
    return_structure: bool = True


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------


class PostSocialParams(BaseModel):
    platform: Platform
    account_id: str | None = None
    caption: str | None = None
    media_ids: list[str] | None = None
    scheduled_for: str | None = None
    tags: list[str] | None = None


class SchedulePostParams(BaseModel):
    platform: Platform
    scheduled_for: str
    caption: str
    media_ids: list[str] | None = None


class GenerateCaptionParams(BaseModel):
    platform: Platform
    context: str = Field(description="What the post is about")
    tone: Literal["casual", "professional", "funny", "inspirational"] = "casual"
    include_hashtags: bool = True
    max_length: int | None = None


# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------


class BrowserStep(BaseModel):
    action: Literal["goto", "click", "type", "select", "upload", "screenshot", "wait", "extract"]
    selector: str | None = None
    value: str | None = None


class BrowserActionParams(BaseModel):
    url: str | None = None
    steps: list[BrowserStep] | None = None
    description: str | None = None


class NavigateToParams(BaseModel):
    url: str = Field(min_length=1)
    wait_for_selector: str | None = None


class ExtractDataParams(BaseModel):
    url: str | None = None
    selectors: dict[str, str]


class TakeScreenshotParams(BaseModel):
    full_page: bool = False
    selector: str | None = None


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class ValidateResultsParams(BaseModel):
    step_id: str | None = Field(default=None, description="Step whose result is checked")
    min_results: int | None = Field(default=None, ge=0)
    required: bool = True


class CheckCompletionParams(BaseModel):
    expected_outcome: str
    screenshot: bool = True
    step_id: str | None = None


class VerifyBookingParams(BaseModel):
    booking_type: Literal["flight", "hotel", "job_application", "form_submission"]
    confirmation_required: list[str] = Field(default_factory=list)
    step_id: str | None = None


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

ALL_TOOLS: list[ToolDefinition] = [
    ToolDefinition(ToolName.GET_WEATHER.value, "Get current weather for a location", "utility", GetWeatherParams),
    ToolDefinition(ToolName.CALCULATE.value, "Evaluate an arithmetic expression", "utility", CalculateParams, is_async=False),
    ToolDefinition(ToolName.SEARCH_FLIGHTS.value, "Search for flight options", "flight", SearchFlightsParams),
    ToolDefinition(ToolName.BOOK_FLIGHT.value, "Book a selected flight", "flight", BookFlightParams, requires_auth=True),
    ToolDefinition(ToolName.SEARCH_JOBS.value, "Search for job openings", "job", SearchJobsParams),
    ToolDefinition(ToolName.APPLY_JOB.value, "Apply to a job posting", "job", ApplyJobParams, requires_auth=True),
    ToolDefinition(ToolName.GENERATE_COVER_LETTER.value, "Generate a cover letter", "job", GenerateCoverLetterParams),
    ToolDefinition(ToolName.FILL_FORM.value, "Fill and submit a web form", "form", FillFormParams),
    ToolDefinition(ToolName.ANALYZE_FORM.value, "Analyze form structure", "form", AnalyzeFormParams),
    ToolDefinition(ToolName.POST_SOCIAL.value, "Post content on social media", "social", PostSocialParams, requires_auth=True),
    ToolDefinition(ToolName.SCHEDULE_POST.value, "Schedule a social media post", "social", SchedulePostParams, requires_auth=True),
    ToolDefinition(ToolName.GENERATE_CAPTION.value, "Generate a caption with hashtags", "social", GenerateCaptionParams),
    ToolDefinition(ToolName.BROWSER_ACTION.value, "Run custom browser automation", "browser", BrowserActionParams),
    ToolDefinition(ToolName.NAVIGATE_TO.value, "Navigate to a URL", "browser", NavigateToParams),
    ToolDefinition(ToolName.EXTRACT_DATA.value, "Extract data from a web page", "browser", ExtractDataParams),
    ToolDefinition(ToolName.TAKE_SCREENSHOT.value, "Take a screenshot as evidence", "browser", TakeScreenshotParams),
    ToolDefinition(ToolName.VALIDATE_RESULTS.value, "Validate a previous step's results", "validation", ValidateResultsParams, is_async=False),
    ToolDefinition(ToolName.CHECK_COMPLETION.value, "Check that the task completed", "validation", CheckCompletionParams),
    ToolDefinition(ToolName.VERIFY_BOOKING.value, "Verify a booking or submission confirmation", "validation", VerifyBookingParams),
]

TOOL_DEFINITIONS: dict[str, ToolDefinition] = {t.name: t for t in ALL_TOOLS}

VERIFICATION_TOOLS = frozenset({
    ToolName.VALIDATE_RESULTS.value,
    ToolName.CHECK_COMPLETION.value,
    ToolName.VERIFY_BOOKING.value,
})
BOOKING_TOOLS = frozenset({
    ToolName.BOOK_FLIGHT.value,
    ToolName.APPLY_JOB.value,
    ToolName.POST_SOCIAL.value,
})
EVIDENCE_TOOLS = frozenset({ToolName.TAKE_SCREENSHOT.value})


def get_definition(name: str) -> ToolDefinition | None:
    return TOOL_DEFINITIONS.get(name)

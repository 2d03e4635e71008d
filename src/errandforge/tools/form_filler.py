"""Form filling tool.

Analyzes renewal forms and fills their fields from the stored user profile
plus any data supplied with the request. Required fields that cannot be
filled are reported so the agent can ask the user for them.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from errandforge.observability.logging import get_logger
from errandforge.tools.base import BaseTool, ToolResult

logger = get_logger(__name__)

DEFAULT_USER_PROFILE: dict[str, Any] = {
    "first_name": "Jordan",
    "last_name": "Doe",
    "full_name": "Jordan Doe",
    "date_of_birth": "1990-01-15",
    "email": "jordan.doe@example.com",
    "phone": "555-123-4567",
    "address": "123 Main St",
    "city": "San Francisco",
    "state": "CA",
    "zip_code": "94102",
    "license_number": "DL123456",
    "policy_number": "POL-987654",
    "vehicle_vin": "1HGBH41JXMN109186",
}


class FormField(BaseModel):
    """A single form field."""

    name: str
    type: str = "text"
    required: bool = True
    value: Optional[Any] = None
    options: list[str] = Field(default_factory=list)


def _fields(*names: str, **selects: list[str]) -> list[FormField]:
    fields = [FormField(name=name) for name in names]
    fields.extend(FormField(name=name, type="select", options=opts) for name, opts in selects.items())
    return fields


class FormFillerTool(BaseTool):
    """Fills web forms from the user profile.

    Params:
        form_url: URL of the form (required)
        additional_data: Extra values, taking precedence over the profile
        auto_submit: Submit when nothing is missing (never done in simulation)

    Result data keys: ``form_id``, ``filled_fields``, ``missing_fields``,
    ``ready_for_submission``.
    """

    name = "form_filler"
    description = "Auto-fills forms from stored user data and reports missing fields"

    def __init__(
        self, user_profile: Optional[dict[str, Any]] = None, latency_seconds: float = 0.0
    ) -> None:
        super().__init__(latency_seconds)
        self.user_profile = dict(DEFAULT_USER_PROFILE if user_profile is None else user_profile)

    async def analyze_form(self, form_url: str) -> ToolResult:
        """Extract the field structure of a form.

        Args:
            form_url: URL of the form

        Returns:
            ToolResult whose data holds ``form_id`` and ``fields``
        """
        if not form_url:
            return ToolResult(success=False, error="form_url is required")

        await self._simulate_latency()
        form_id, fields = self._form_structure(form_url)
        logger.info("form_analyzed", form_id=form_id, field_count=len(fields))
        return ToolResult(
            success=True,
            data={"form_id": form_id, "fields": [f.model_dump() for f in fields]},
            metadata={"form_url": form_url},
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        form_url = params.get("form_url", "")
        analysis = await self.analyze_form(form_url)
        if not analysis.success:
            return analysis

        available = {**self.user_profile, **(params.get("additional_data") or {})}
        filled = [self._fill(FormField(**raw), available) for raw in analysis.data["fields"]]
        missing = [f.name for f in filled if f.required and f.value in (None, "")]

        logger.info(
            "form_filled",
            form_id=analysis.data["form_id"],
            total_fields=len(filled),
            missing_fields=len(missing),
        )
        return ToolResult(
            success=True,
            data={
                "form_id": analysis.data["form_id"],
                "filled_fields": {f.name: f.value for f in filled if f.value not in (None, "")},
                "missing_fields": missing,
                "ready_for_submission": not missing,
                "auto_submit": bool(params.get("auto_submit")) and not missing,
            },
            metadata={"form_url": form_url},
        )

    def _fill(self, field: FormField, data: dict[str, Any]) -> FormField:
        for key in (field.name, f"user_{field.name}", f"contact_{field.name}"):
            if data.get(key) not in (None, ""):
                return field.model_copy(update={"value": data[key]})
        return field

    def _form_structure(self, form_url: str) -> tuple[str, list[FormField]]:
        url = form_url.lower()
        if "dmv" in url or "license" in url:
            return "dmv-license-renewal", _fields(
                "first_name",
                "last_name",
                "date_of_birth",
                "license_number",
                "address",
                "city",
                "zip_code",
                "email",
                "phone",
                state=["CA", "NY", "TX"],
            )
        if "insurance" in url:
            return "insurance-renewal", _fields(
                "policy_number",
                "full_name",
                "email",
                "phone",
                "vehicle_vin",
                coverage_level=["Basic", "Standard", "Premium"],
            )
        return "generic-form", _fields("name", "email")

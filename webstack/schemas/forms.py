from __future__ import annotations

import re
from typing import Annotated, Any, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, AnyUrl, BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic_core import PydanticCustomError

PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s./0-9]*$")
DOMAIN_RE = re.compile(r"^([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$")
_TAG_RE = re.compile(r"<[^>]*>")
_SCHEME_RE = re.compile(r"^(https?://)?(www\.)?")
_url_adapter = TypeAdapter(AnyUrl)


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("form_field", message)


def _length(minimum: int | None = None, maximum: int | None = None, *, too_short: str = "", too_long: str = ""):
    def check(value: str) -> str:
        if minimum is not None and len(value) < minimum:
            raise _invalid(too_short or f"String must contain at least {minimum} character(s)")
        if maximum is not None and len(value) > maximum:
            raise _invalid(too_long or f"String must contain at most {maximum} character(s)")
        return value

    return check


def _email(value: str) -> str:
    if not value:
        raise _invalid("Email is required")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise _invalid("Please enter a valid email address") from exc
    if len(value) > 255:
        raise _invalid("Email must be less than 255 characters")
    return value


def _optional_email(value: str) -> str:
    return value if value == "" else _email(value)


def _phone(value: str) -> str:
    if value == "":
        return value
    if not PHONE_RE.match(value):
        raise _invalid("Please enter a valid phone number")
    if len(value) > 20:
        raise _invalid("Phone number must be less than 20 characters")
    return value


def _url(value: str) -> str:
    if value == "":
        return value
    try:
        _url_adapter.validate_python(value)
    except ValidationError as exc:
        raise _invalid("Please enter a valid URL") from exc
    if len(value) > 500:
        raise _invalid("URL must be less than 500 characters")
    return value


def _domain(value: str) -> str:
    if not value:
        raise _invalid("Domain is required")
    if not DOMAIN_RE.match(value):
        raise _invalid("Please enter a valid domain (e.g., example.com)")
    if len(value) > 253:
        raise _invalid("Domain must be less than 253 characters")
    return value


def _optional_name(value: str) -> str:
    return value if value == "" else _name(value)


_name = _length(1, 100, too_short="Name is required", too_long="Name must be less than 100 characters")

Email = Annotated[str, AfterValidator(_email)]
OptionalEmail = Annotated[str, AfterValidator(_optional_email)]
Phone = Annotated[str, AfterValidator(_phone)]
Url = Annotated[str, AfterValidator(_url)]
Domain = Annotated[str, AfterValidator(_domain)]
Name = Annotated[str, AfterValidator(_name)]
OptionalName = Annotated[str, AfterValidator(_optional_name)]
Message = Annotated[
    str,
    AfterValidator(
        _length(1, 5000, too_short="Message is required", too_long="Message must be less than 5000 characters")
    ),
]


class FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class ContactForm(FormModel):
    name: Name
    email: Email
    phone: Optional[Phone] = None
    message: Message


class LeadForm(FormModel):
    email: Email
    phone: Optional[Phone] = None
    domain: Optional[str] = None
    full_name: Optional[OptionalName] = None
    company_employees: Optional[str] = None
    annual_revenue: Optional[str] = None


class DomainAuditForm(FormModel):
    domain: Domain
    email: Optional[OptionalEmail] = None


class DirectoryListingForm(FormModel):
    business_name: Annotated[str, AfterValidator(_length(1, 200, too_short="Business name is required"))]
    description: Annotated[
        str, AfterValidator(_length(10, 2000, too_short="Description must be at least 10 characters"))
    ]
    contact_name: Name
    email: Email
    phone: Optional[Phone] = None
    website_url: Optional[Url] = None
    address: Optional[Annotated[str, AfterValidator(_length(maximum=500))]] = None
    city: Optional[Annotated[str, AfterValidator(_length(maximum=100))]] = None
    state: Optional[Annotated[str, AfterValidator(_length(maximum=100))]] = None
    zip_code: Optional[Annotated[str, AfterValidator(_length(maximum=20))]] = None


class PartnerApplicationForm(FormModel):
    company_name: Annotated[str, AfterValidator(_length(1, 200, too_short="Company name is required"))]
    contact_name: Name
    contact_email: Email
    website_url: Optional[Url] = None
    description: Annotated[
        str, AfterValidator(_length(20, 2000, too_short="Description must be at least 20 characters"))
    ]
    why_join: Optional[Annotated[str, AfterValidator(_length(maximum=2000))]] = None


FORM_SCHEMAS: dict[str, type[FormModel]] = {
    "contact": ContactForm,
    "lead": LeadForm,
    "domain-audit": DomainAuditForm,
    "directory-listing": DirectoryListingForm,
    "partner-application": PartnerApplicationForm,
}


def field_errors(exc: ValidationError) -> dict[str, str]:
    """First error message per field, keyed by the top-level field name."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        location = error.get("loc") or ("form",)
        errors.setdefault(str(location[0]), error["msg"])
    return errors


def sanitize_input(value: str) -> str:
    return _TAG_RE.sub("", value.strip()).replace("<", "").replace(">", "")


def sanitize_form_data(data: dict[str, Any]) -> dict[str, Any]:
    return {key: sanitize_input(value) if isinstance(value, str) else value for key, value in data.items()}


def validate_and_sanitize_domain(value: str) -> dict[str, Any]:
    cleaned = _SCHEME_RE.sub("", value.lower().strip(), count=1).split("/")[0]
    try:
        _domain(cleaned)
    except PydanticCustomError as exc:
        return {"valid": False, "domain": cleaned, "error": exc.message()}
    return {"valid": True, "domain": cleaned}

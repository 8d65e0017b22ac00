"""Contact and shipping address collected from the buyer at checkout.

These are checkout input only. They are validated locally before any remote
call is made and are not kept once the checkout returns.
"""

from protean.exceptions import ValidationError
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

_FORBIDDEN_EMAIL_CHARS = (";", ",", "(", ")", '"', ":", "<", ">", "[", "]", "\\")


def _check_email(email: str) -> str:
    """Structural email check: one @, sane local and domain parts."""
    if any(ch.isspace() for ch in email) or email.count("@") != 1:
        raise ValueError("Please enter a valid email")

    local_part, domain_part = email.split("@", 1)

    if not local_part or local_part.startswith(".") or local_part.endswith("."):
        raise ValueError("Please enter a valid email")

    if not domain_part or "." not in domain_part or domain_part.startswith(".") or domain_part.endswith("."):
        raise ValueError("Please enter a valid email")

    if any(label.startswith("-") or label.endswith("-") for label in domain_part.split(".")):
        raise ValueError("Please enter a valid email")

    if ".." in email or any(ch in email for ch in _FORBIDDEN_EMAIL_CHARS):
        raise ValueError("Please enter a valid email")

    return email


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    line1: str = Field(min_length=5)
    city: str = Field(min_length=2)
    postcode: str = Field(min_length=3)
    country: str = Field(min_length=2)


class Contact(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=2)
    email: str
    phone: str = Field(min_length=10)
    address: ShippingAddress

    @field_validator("email")
    @classmethod
    def email_must_be_valid(cls, value: str) -> str:
        return _check_email(value)

    @classmethod
    def from_form(cls, data: dict) -> "Contact":
        """Validate raw form input, reporting problems per field.

        Nested fields are reported with dotted names (``"address.city"``).
        """
        try:
            return cls.model_validate(data)
        except SchemaError as exc:
            messages: dict[str, list[str]] = {}
            for error in exc.errors():
                field = ".".join(str(part) for part in error["loc"]) or "contact"
                messages.setdefault(field, []).append(error["msg"])
            raise ValidationError(messages) from exc

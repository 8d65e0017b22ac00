"""Tests for checkout contact and shipping address validation."""

import pytest
from pydantic import ValidationError as SchemaError
from storefront.checkout.contact import Contact
from protean.exceptions import ValidationError


def _form(**overrides):
    address = {
        "line1": "123 Business Street",
        "city": "New York",
        "postcode": "10001",
        "country": "US",
    }
    address.update(overrides.pop("address", {}))
    data = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+1 555 123 4567",
        "address": address,
    }
    data.update(overrides)
    return data


class TestValidContact:
    def test_valid_form(self):
        contact = Contact.from_form(_form())
        assert contact.name == "Jane Doe"
        assert contact.address.city == "New York"

    def test_whitespace_is_stripped(self):
        contact = Contact.from_form(_form(name="  Jane Doe  ", address={"city": " Paris "}))
        assert contact.name == "Jane Doe"
        assert contact.address.city == "Paris"

    def test_contact_is_immutable(self):
        contact = Contact.from_form(_form())
        with pytest.raises(SchemaError):
            contact.name = "Someone Else"


class TestFieldRules:
    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"name": "J"}, "name"),
            ({"phone": "12345"}, "phone"),
            ({"address": {"line1": "1 St"}}, "address.line1"),
            ({"address": {"city": "X"}}, "address.city"),
            ({"address": {"postcode": "12"}}, "address.postcode"),
            ({"address": {"country": "U"}}, "address.country"),
        ],
    )
    def test_too_short(self, overrides, field):
        with pytest.raises(ValidationError) as exc:
            Contact.from_form(_form(**overrides))
        assert field in exc.value.messages

    def test_padding_does_not_satisfy_minimum_length(self):
        with pytest.raises(ValidationError) as exc:
            Contact.from_form(_form(name=" J "))
        assert "name" in exc.value.messages

    def test_all_problems_reported_together(self):
        with pytest.raises(ValidationError) as exc:
            Contact.from_form(_form(name="J", email="nope", address={"city": "X"}))
        assert set(exc.value.messages) == {"name", "email", "address.city"}

    def test_missing_field_reported(self):
        data = _form()
        del data["phone"]
        with pytest.raises(ValidationError) as exc:
            Contact.from_form(data)
        assert "phone" in exc.value.messages


class TestEmail:
    @pytest.mark.parametrize(
        "email",
        ["jane@example.com", "jane.doe+orders@mail.example.co.uk", "j_d-1@sub-domain.example.org"],
    )
    def test_accepted(self, email):
        assert Contact.from_form(_form(email=email)).email == email

    @pytest.mark.parametrize(
        "email",
        [
            "plainaddress",
            "@example.com",
            "jane@",
            "jane@localhost",
            "jane@@example.com",
            "jane doe@example.com",
            ".jane@example.com",
            "jane.@example.com",
            "jane..doe@example.com",
            "jane@-example.com",
            "jane@example.com.",
            "jane<x>@example.com",
        ],
    )
    def test_rejected(self, email):
        with pytest.raises(ValidationError) as exc:
            Contact.from_form(_form(email=email))
        assert any("Please enter a valid email" in msg for msg in exc.value.messages["email"])

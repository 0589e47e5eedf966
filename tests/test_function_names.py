import pytest

from webstack.domain.errors import ValidationError
from webstack.provision.functions import (
    MAX_FUNCTION_NAME_LENGTH,
    derive_function_name,
    validate_function_parameters,
)


@pytest.mark.parametrize(
    "path, method, expected",
    [
        ("/api/users", "GET", "get-users"),
        ("/api/users/{id}", "DELETE", "delete-users--id"),
        ("/api/users/profile", "PUT", "put-users-profile"),
        ("/api", "GET", "get"),
        ("/api/", "POST", "post"),
    ],
)
def test_derive_function_name(path, method, expected):
    assert derive_function_name(path, method) == expected


def test_long_names_are_truncated_without_trailing_separator():
    name = derive_function_name("/api/organizations/memberships/invitations", "PATCH")
    assert len(name) <= MAX_FUNCTION_NAME_LENGTH
    assert not name.endswith("-")
    assert name.startswith("patch-organizations")


def test_truncation_at_separator_is_stripped():
    # "get-" + 25 chars puts a separator at index 29
    name = derive_function_name("/api/" + "a" * 25 + "/bbbb", "GET")
    assert name == "get-" + "a" * 25


def test_validate_function_parameters():
    validate_function_parameters("get-users", "src/users")

    with pytest.raises(ValidationError):
        validate_function_parameters("", "src")
    with pytest.raises(ValidationError):
        validate_function_parameters("bad name!", "src")
    with pytest.raises(ValidationError):
        validate_function_parameters("a" * 65, "src")
    with pytest.raises(ValidationError):
        validate_function_parameters("ok", " ")

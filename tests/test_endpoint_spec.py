import pytest

from webstack.domain.errors import ValidationError
from webstack.domain.models import ConstructProps, EndpointSpec, ResourceConfig


def test_method_is_normalized_and_defaults_to_get():
    assert EndpointSpec.parse(path="/users", source_path="src").method == "GET"
    assert EndpointSpec.parse(path="/users", method="post", source_path="src").method == "POST"
    assert EndpointSpec.parse(path="/users", method=None, source_path="src").method == "GET"


@pytest.mark.parametrize(
    "fields, message",
    [
        ({"path": "", "source_path": "src"}, "Resource path is required"),
        ({"source_path": "src"}, "Resource path is required"),
        ({"path": "users", "source_path": "src"}, 'Resource path must start with "/"'),
        ({"path": "/users", "source_path": "  "}, "Lambda source path is required"),
        ({"path": "/users"}, "Lambda source path is required"),
        (
            {"path": "/users", "method": "TRACE", "source_path": "src"},
            "Invalid HTTP method. Supported methods: GET, POST, PUT, DELETE, PATCH, OPTIONS",
        ),
        (
            {"path": "/users", "source_path": "src", "group": "admin"},
            "group can only be specified when requires_auth is true",
        ),
    ],
)
def test_invalid_endpoints_raise_validation_error(fields, message):
    with pytest.raises(ValidationError) as exc:
        EndpointSpec.parse(**fields)
    assert str(exc.value) == message


def test_blank_group_is_treated_as_absent():
    spec = EndpointSpec.parse(path="/users", source_path="src", group=" ")
    assert spec.group is None


def test_resource_config_is_namespaced_under_api():
    spec = EndpointSpec.parse(
        path="/users/{id}",
        method="delete",
        source_path="src",
        requires_auth=True,
        group="admin",
        environment={"TABLE": "users"},
    )
    config = ResourceConfig.from_endpoint(spec)

    assert config.key == ("DELETE", "/api/users/{id}")
    assert config.group == "admin"
    assert config.environment == {"TABLE": "users"}


def test_domain_requires_certificate():
    with pytest.raises(ValidationError) as exc:
        ConstructProps.parse(domain_name="example.com")
    assert "certificate_arn is required" in str(exc.value)

    props = ConstructProps.parse(domain_name="example.com", certificate_arn="arn:aws:acm:us-east-1:123456789012:certificate/x")
    assert props.enable_logging is True

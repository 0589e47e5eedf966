from webstack.graph.model import ConstructGraph
from webstack.graph.resources import CorsOptions
from webstack.provision.paths import resolve_resource, split_segments


def _graph():
    g = ConstructGraph("App")
    api = g.add(g.root, "Api", "rest_api", None)
    return g, api


def test_split_segments_drops_empty_parts():
    assert split_segments("/users//profile/") == ["users", "profile"]
    assert split_segments("/") == []


def test_shared_prefixes_reuse_nodes():
    g, api = _graph()
    cors = CorsOptions()

    users = resolve_resource(g, api, "/users", cors)
    profile = resolve_resource(g, api, "/users/profile", cors)
    products = resolve_resource(g, api, "/products", cors)

    assert g.get(profile.parent) is users
    assert profile.payload.path == "/users/profile"
    assert products.payload.path_part == "products"
    assert len(g.of_kind("api_resource")) == 3


def test_resolution_is_idempotent():
    g, api = _graph()
    cors = CorsOptions()

    first = resolve_resource(g, api, "/a/b/c", cors)
    second = resolve_resource(g, api, "/a/b/c", cors)

    assert first is second
    assert len(g.of_kind("api_resource")) == 3


def test_empty_path_resolves_to_root():
    g, api = _graph()
    assert resolve_resource(g, api, "/", CorsOptions()) is api
    assert g.of_kind("api_resource") == []


def test_new_nodes_get_the_given_preflight_policy():
    g, api = _graph()
    cors = CorsOptions(allow_origins=("https://example.com",), allow_credentials=True)
    node = resolve_resource(g, api, "/orders", cors)
    assert node.payload.cors == cors

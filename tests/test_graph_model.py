import pytest

from webstack.graph.model import ConstructGraph


def test_add_indexes_by_kind_and_builds_paths():
    g = ConstructGraph("App")
    api = g.add(g.root, "Api", "rest_api", None)
    users = g.add(api, "users", "api_resource", None)

    assert users.path == "App/Api/users"
    assert [n.id for n in g.of_kind("api_resource")] == ["users"]
    assert g.child(api, "users", "api_resource") is users
    assert g.child(api, "users", "api_method") is None
    assert len(g) == 3


def test_duplicate_sibling_is_rejected():
    g = ConstructGraph("App")
    g.add(g.root, "Bucket", "bucket", None)
    with pytest.raises(ValueError):
        g.add(g.root, "Bucket", "bucket", None)

    # same id, different kind is a different node
    g.add(g.root, "Bucket", "log_group", None)


def test_walk_is_depth_first_pre_order():
    g = ConstructGraph("App")
    a = g.add(g.root, "a", "api_resource", None)
    g.add(a, "a1", "api_resource", None)
    g.add(g.root, "b", "api_resource", None)

    assert [n.id for n in g.walk()] == ["App", "a", "a1", "b"]
    assert [n.id for n in g.walk(a)] == ["a", "a1"]


def test_detach_removes_subtree_from_walk_and_index():
    g = ConstructGraph("App")
    fn = g.add(g.root, "get-users", "function", None)
    g.add(fn, "get-usersExecutionRole", "execution_role", None)

    g.detach(fn)

    assert [n.id for n in g.walk()] == ["App"]
    assert g.of_kind("function") == []
    assert g.of_kind("execution_role") == []
    # the id is free again
    g.add(g.root, "get-users", "function", None)

    with pytest.raises(ValueError):
        g.add(fn, "late", "alarm", None)


def test_root_cannot_be_detached():
    g = ConstructGraph("App")
    with pytest.raises(ValueError):
        g.detach(g.root)

"""Tests for mapping changed paths to their governing owners files."""

import pytest

from revbalance_core.errors import PaginationError, TransportError
from revbalance_core.resolver import OwnersLookup, _normalize_dir, fetch_changed_paths, resolve_required_groups


class TestNormalizeDir:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("src/api/handler.py", "src/api"),
            ("/src/api/handler.py", "src/api"),
            ("README.md", ""),
            ("/README.md", ""),
            ("a/b/c/d.txt", "a/b/c"),
        ],
    )
    def test_normalize(self, path, expected):
        assert _normalize_dir(path) == expected


class TestFetchChangedPaths:
    def test_single_page(self, host, pr_factory):
        host.changed[1] = ["a.py", "b.py"]
        assert fetch_changed_paths(host, pr_factory()) == ["a.py", "b.py"]
        assert host.page_requests == [0]

    def test_follows_pages(self, host, pr_factory):
        host.page_size = 2
        host.changed[1] = [f"f{i}.py" for i in range(5)]
        assert fetch_changed_paths(host, pr_factory()) == [f"f{i}.py" for i in range(5)]
        assert host.page_requests == [0, 1, 2]

    def test_non_advancing_page_token_raises(self, host, pr_factory, mocker):
        mocker.patch.object(host, "list_changed_paths", side_effect=[(["a.py"], 1), (["b.py"], 1)])
        with pytest.raises(PaginationError):
            fetch_changed_paths(host, pr_factory())


class TestOwnersLookup:
    def test_finds_nearest_owners_file(self, host):
        host.files = {"src/owners.txt": "alice", "owners.txt": "root"}
        lookup = OwnersLookup(host, "1001")
        assert lookup.find("src/api/v1") == "src/owners.txt"
        assert lookup.contents["src/owners.txt"] == "alice"

    def test_falls_back_to_root(self, host):
        host.files = {"owners.txt": "root"}
        assert OwnersLookup(host, "1001").find("docs") == "owners.txt"

    def test_none_when_no_owners_file_anywhere(self, host):
        lookup = OwnersLookup(host, "1001")
        assert lookup.find("a/b") is None
        assert host.fetched == ["a/b/owners.txt", "a/owners.txt", "owners.txt"]

    def test_root_directory_checks_root_file_once(self, host):
        lookup = OwnersLookup(host, "1001")
        assert lookup.find("") is None
        assert host.fetched == ["owners.txt"]

    def test_every_visited_directory_is_memoised(self, host):
        host.files = {"owners.txt": "root"}
        lookup = OwnersLookup(host, "1001")
        lookup.find("a/b/c")
        fetched = list(host.fetched)

        assert lookup.find("a/b/c") == "owners.txt"
        assert lookup.find("a/b") == "owners.txt"
        assert lookup.find("a") == "owners.txt"
        assert host.fetched == fetched

    def test_sibling_reuses_shared_ancestor(self, host):
        host.files = {"a/owners.txt": "x"}
        lookup = OwnersLookup(host, "1001")
        lookup.find("a/b")
        lookup.find("a/c")
        assert host.fetched == ["a/b/owners.txt", "a/owners.txt", "a/c/owners.txt"]


class TestResolveRequiredGroups:
    def test_one_group_per_distinct_owners_file(self, host, pr_factory):
        host.files = {
            "owners.txt": "root-owner",
            "services/api/owners.txt": "alice\n; TEAM: infra",
            "web/owners.txt": "*bob",
        }
        host.changed[1] = [
            "services/api/handlers/users.py",
            "services/api/handlers/orders.py",
            "services/api/README.md",
            "web/index.html",
            "Makefile",
        ]
        groups = resolve_required_groups(host, pr_factory())

        # Sorted by owners file path: owners.txt, services/api/owners.txt, web/owners.txt
        assert [g.owners for g in groups] == [{"root-owner"}, {"alice"}, {"bob"}]
        assert groups[1].teams == {"infra"}

    def test_each_directory_fetched_at_most_once(self, host, pr_factory):
        host.files = {"services/api/owners.txt": "alice"}
        host.changed[1] = [f"services/api/handlers/h{i}.py" for i in range(50)]
        resolve_required_groups(host, pr_factory())
        assert host.fetched == ["services/api/handlers/owners.txt", "services/api/owners.txt"]

    def test_no_owners_files_yields_no_groups(self, host, pr_factory):
        host.changed[1] = ["src/main.py"]
        assert resolve_required_groups(host, pr_factory()) == []

    def test_empty_pr_yields_no_groups(self, host, pr_factory):
        assert resolve_required_groups(host, pr_factory()) == []

    def test_renamed_file_paths_both_count(self, host, pr_factory):
        host.files = {"old/owners.txt": "alice", "new/owners.txt": "bob"}
        host.changed[1] = ["new/module.py", "old/module.py"]
        groups = resolve_required_groups(host, pr_factory())
        assert [g.owners for g in groups] == [{"bob"}, {"alice"}]

    def test_transport_error_propagates(self, host, pr_factory, mocker):
        host.changed[1] = ["src/main.py"]
        mocker.patch.object(host, "get_file_content", side_effect=TransportError("boom"))
        with pytest.raises(TransportError):
            resolve_required_groups(host, pr_factory())

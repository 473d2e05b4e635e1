"""Tests for the requirement grammar."""

import pytest

from kindling.errors import InvalidRequirementError
from kindling.models.component import LocalOrigin, RemoteOrigin
from kindling.requirement import parse_requirement


def test_bare_name_has_no_origin():
    req = parse_requirement("comp")
    assert req.name == "comp"
    assert req.origin is None


def test_path_origin():
    req = parse_requirement("comp@path:../components/comp")
    assert req.name == "comp"
    assert req.origin == LocalOrigin(path="../components/comp")


def test_git_origin_without_selector():
    req = parse_requirement("comp@git:https://example.com/org/comp.git")
    assert req.origin == RemoteOrigin(url="https://example.com/org/comp.git")
    assert req.origin.selector is None


def test_git_origin_with_branch():
    req = parse_requirement("comp@git:git@example.com:org/comp.git@branch:main")
    assert req.origin.url == "git@example.com:org/comp.git"
    assert req.origin.selector == ("branch", "main")


def test_git_origin_with_tag_and_ref():
    assert parse_requirement("comp@git:https://x/comp.git@tag:v1.0").origin.tag == "v1.0"
    assert parse_requirement("comp@git:https://x/comp.git@ref:abc123").origin.ref == "abc123"


def test_github_expands_to_https_url():
    req = parse_requirement("comp@github:acme/comp@tag:v2")
    assert req.origin == RemoteOrigin(url="https://github.com/acme/comp.git", tag="v2")


def test_selector_priority_ref_over_branch_over_tag():
    origin = RemoteOrigin(url="u", ref="r", branch="b", tag="t")
    assert origin.selector == ("ref", "r")
    assert RemoteOrigin(url="u", branch="b", tag="t").selector == ("branch", "b")


def test_unsupported_scheme_lists_formats():
    with pytest.raises(InvalidRequirementError, match="Supported formats"):
        parse_requirement("comp@svn:whatever")


def test_invalid_name_rejected():
    with pytest.raises(InvalidRequirementError):
        parse_requirement("my-comp@path:.")


def test_github_requires_org_and_repo():
    with pytest.raises(InvalidRequirementError):
        parse_requirement("comp@github:just-a-repo")


def test_empty_path_rejected():
    with pytest.raises(InvalidRequirementError):
        parse_requirement("comp@path:")


def test_origin_describe_round_trip_shape():
    assert LocalOrigin("../c").describe() == "path:../c"
    assert RemoteOrigin("https://x/c.git", branch="dev").describe() == "git:https://x/c.git@branch:dev"

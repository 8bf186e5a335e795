"""Unit tests for folder classification and topology building."""

import pytest

from foldhost.errors import ConfigError
from foldhost.topology import AppKind, build_topology, classify_apps
from foldhost.topology.classifier import has_compose_file, is_reserved, is_valid_label

# ── classify_apps ───────────────────────────────────────────────────


def test_static_and_containerized(make_repo):
    root = make_repo(static=["blog"], containerized=["api"])
    apps = classify_apps(root)

    assert [(a.name, a.kind) for a in apps] == [
        ("api", AppKind.CONTAINERIZED),
        ("blog", AppKind.STATIC),
    ]


def test_reserved_and_dot_dirs_excluded(make_repo):
    root = make_repo(
        static=["blog", "node_modules", "server-setup", "_root", ".git", ".github"],
    )
    assert [a.name for a in classify_apps(root)] == ["blog"]


def test_top_level_files_ignored(make_repo):
    root = make_repo(static=["blog"], files={"README.md": "# hi\n", "docker-compose.yml": "services: {}\n"})
    assert [a.name for a in classify_apps(root)] == ["blog"]


def test_sorted_bytewise(make_repo):
    # '-' sorts before digits, digits before letters.
    root = make_repo(static=["beta", "ab", "a1", "a-b"])
    assert [a.name for a in classify_apps(root)] == ["a-b", "a1", "ab", "beta"]


def test_invalid_labels_skipped(make_repo, caplog):
    root = make_repo(static=["blog", "My Site", "MyApp", "___", "a;b", "a{b}", "-lead", "trail-", "x" * 64])
    rejected = []
    with caplog.at_level("WARNING"):
        apps = classify_apps(root, rejected=rejected)

    assert [a.name for a in apps] == ["blog"]
    assert len(rejected) == 8
    assert "Skipping 'My Site': not a valid subdomain label" in caplog.text


@pytest.mark.parametrize(
    "name, valid",
    [("api", True), ("a-1", True), ("x" * 63, True), ("Api", False), ("a_b", False), ("a\n", False), ("", False)],
)
def test_is_valid_label(name, valid):
    assert is_valid_label(name) is valid


@pytest.mark.parametrize("filename", ["docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml"])
def test_every_compose_filename_detected(make_repo, filename):
    root = make_repo(files={f"svc/{filename}": "services: {}\n"})
    apps = classify_apps(root)
    assert apps[0].kind is AppKind.CONTAINERIZED


def test_nested_compose_file_does_not_count(make_repo):
    root = make_repo(files={"site/deploy/docker-compose.yml": "services: {}\n"})
    assert classify_apps(root)[0].kind is AppKind.STATIC


def test_empty_root(make_repo):
    assert classify_apps(make_repo()) == []


def test_missing_root_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        classify_apps(str(tmp_path / "nope"))


def test_custom_reserved(make_repo):
    root = make_repo(static=["blog", "docs"])
    assert [a.name for a in classify_apps(root, reserved={"docs"})] == ["blog"]


def test_is_reserved():
    assert is_reserved(".cache")
    assert is_reserved("node_modules")
    assert is_reserved("_root")
    assert not is_reserved("root")


def test_has_compose_file(make_repo, tmp_path):
    root = make_repo(containerized=["api"], static=["blog"])
    assert has_compose_file(f"{root}/api")
    assert not has_compose_file(f"{root}/blog")


# ── build_topology ──────────────────────────────────────────────────


def test_build_topology(make_repo):
    root = make_repo(static=["blog"], containerized=["api", "shop"])
    topology = build_topology(root, "example.com")

    assert topology.root_domain == "example.com"
    assert topology.names == ["api", "blog", "shop"]
    assert [a.name for a in topology.static_apps] == ["blog"]
    assert [a.name for a in topology.containerized_apps] == ["api", "shop"]


def test_build_topology_keeps_rejected_names(make_repo):
    root = make_repo(static=["blog", "Blog", "my_site"])
    topology = build_topology(root, "example.com")
    assert topology.names == ["blog"]
    assert topology.rejected == ("Blog", "my_site")


def test_subjects_root_first(make_repo):
    root = make_repo(static=["blog"], containerized=["api"])
    topology = build_topology(root, "example.com")
    assert topology.subjects == ["example.com", "api.example.com", "blog.example.com"]


def test_build_topology_logs_counts(make_repo, caplog):
    root = make_repo(static=["blog"], containerized=["api"])
    with caplog.at_level("INFO"):
        build_topology(root, "example.com")
    assert "Found 2 apps: 1 static, 1 containerized" in caplog.text

from __future__ import annotations

from pathlib import Path

import pytest

from artifact_catalog import (
    ArtifactPattern,
    CatalogError,
    PatternKind,
    TargetAction,
    load_catalog,
)


def _find(catalog, name: str, kind: PatternKind) -> ArtifactPattern:
    return next(p for p in catalog.patterns if p.name == name and p.kind is kind)


def test_default_catalog_loads() -> None:
    catalog = load_catalog()

    node_modules = _find(catalog, "node_modules", PatternKind.DIR_NAME)
    assert node_modules.category == "dev_artifacts"
    assert node_modules.min_size_kb == 100
    assert node_modules.action is TargetAction.REMOVE

    assert _find(catalog, "__pycache__", PatternKind.DIR_NAME).min_size_kb == 10
    assert _find(catalog, "*.log", PatternKind.FILE_GLOB).min_size_kb == 1024
    assert _find(catalog, "vendor/bundle", PatternKind.RELATIVE_SUFFIX).segments == ("vendor", "bundle")
    assert _find(catalog, ".local/share/Trash", PatternKind.FIXED).action is TargetAction.TRASH


def test_system_locations_require_elevation() -> None:
    catalog = load_catalog()
    system = [p for p in catalog.patterns if p.kind is PatternKind.SYSTEM]

    assert {p.name for p in system} >= {"/tmp", "/var/tmp", "/var/log"}
    assert all(p.requires_elevated for p in system)
    var_log = _find(catalog, "/var/log", PatternKind.SYSTEM)
    assert var_log.action is TargetAction.PRUNE_OLD
    assert var_log.older_than_days == 30


def test_categories_are_ordered() -> None:
    catalog = load_catalog()
    titles = [c.title for c in sorted(catalog.categories.values(), key=lambda c: c.order)]
    assert titles == ["Application Caches", "Trash", "Development Artifacts", "Log & Temp Files", "System Files"]


def test_protected_names_and_group_rules() -> None:
    catalog = load_catalog()
    assert catalog.protected_names == (".env", ".env.*")
    assert ("/vendor/bundle", "vendor/bundle") in catalog.group_key_rules


def test_unknown_category_falls_back_to_key() -> None:
    catalog = load_catalog()
    assert catalog.category("misc").title == "misc"


def test_glob_matching() -> None:
    egg = ArtifactPattern(name="*.egg-info", kind=PatternKind.DIR_NAME, category="dev_artifacts")
    assert egg.is_glob
    assert egg.matches_name("mypkg.egg-info")
    assert not egg.matches_name("egg-info.txt")

    suffix = ArtifactPattern(name="vendor/bundle", kind=PatternKind.RELATIVE_SUFFIX, category="dev_artifacts")
    assert suffix.matches_name("vendor")
    assert not suffix.matches_name("bundle")


def test_prune_requires_age(tmp_path: Path) -> None:
    rules = tmp_path / "rules.toml"
    rules.write_text('[[patterns]]\npattern = "logs"\ntype = "fixed"\naction = "prune"\n')
    with pytest.raises(CatalogError):
        load_catalog(rules)


def test_unknown_kind_is_rejected(tmp_path: Path) -> None:
    rules = tmp_path / "rules.toml"
    rules.write_text('[[patterns]]\npattern = "x"\ntype = "symlink"\n')
    with pytest.raises(CatalogError):
        load_catalog(rules)


def test_floors_default_by_kind(tmp_path: Path) -> None:
    rules = tmp_path / "rules.toml"
    rules.write_text(
        '[[patterns]]\npattern = "target"\ntype = "dir"\n\n'
        '[[patterns]]\npattern = "*.bak"\ntype = "file"\n\n'
        '[[patterns]]\npattern = "/srv/tmp"\ntype = "system"\naction = "empty"\n'
    )
    catalog = load_catalog(rules)
    floors = {p.name: p.min_size_kb for p in catalog.patterns}
    assert floors == {"target": 100, "*.bak": 0, "/srv/tmp": 0}
    assert catalog.patterns[2].requires_elevated

# tests/test_registry.py
# Site -> workers mapping owned by the service

import pytest

from webfarm.local.supervisor import DuplicateUnitError, Executable, SiteRegistry


def _unit(tmp_path, name):
    return Executable(tmp_path, name, extension=".exe")


def test_replace_returns_previous_generation(tmp_path):
    registry = SiteRegistry()
    old = [_unit(tmp_path, "a"), _unit(tmp_path, "b")]
    new = [_unit(tmp_path, "a")]

    assert registry.replace("siteA", old) == []
    assert registry.replace("siteA", new) == old
    assert registry.units("siteA") == new
    assert len(registry) == 1


def test_duplicate_names_are_rejected(tmp_path):
    registry = SiteRegistry()

    with pytest.raises(DuplicateUnitError) as excinfo:
        registry.replace("siteA", [_unit(tmp_path, "a"), _unit(tmp_path, "a")])

    assert isinstance(excinfo.value, ValueError)
    assert "siteA" not in registry


def test_same_name_on_different_sites_is_fine(tmp_path):
    registry = SiteRegistry()
    registry.replace("siteA", [_unit(tmp_path, "worker")])
    registry.replace("siteB", [_unit(tmp_path, "worker")])

    assert sorted(registry.sites()) == ["siteA", "siteB"]
    assert len(registry) == 2


def test_accessors_return_copies(tmp_path):
    registry = SiteRegistry()
    registry.replace("siteA", [_unit(tmp_path, "a")])

    registry.units("siteA").clear()
    registry.all_units().clear()

    assert len(registry.units("siteA")) == 1
    assert len(registry.all_units()) == 1


def test_pop_and_clear(tmp_path):
    registry = SiteRegistry()
    a, b = _unit(tmp_path, "a"), _unit(tmp_path, "b")
    registry.replace("siteA", [a])
    registry.replace("siteB", [b])

    assert registry.pop("siteA") == [a]
    assert registry.pop("siteA") == []
    assert registry.clear() == [("siteB", b)]
    assert registry.clear() == []
    assert len(registry) == 0
    assert registry.units("siteB") == []

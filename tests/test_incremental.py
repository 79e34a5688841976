from pkgrepo.domain.models import PackageBuild, RepositoryIndex
from pkgrepo.services.incremental import find_previous_record, should_skip


def _build(name: str, version: str) -> PackageBuild:
    return PackageBuild.model_validate({"package": name, "info": {"version": version}})


PREVIOUS = RepositoryIndex.model_validate(
    {"packages": [{"name": "foo", "version": "1.0"}, {"name": "bar", "version": "2.0"}]}
)


def test_same_version_is_skipped():
    assert should_skip(_build("foo", "1.0"), PREVIOUS) is True


def test_different_version_is_rebuilt():
    assert should_skip(_build("foo", "1.1"), PREVIOUS) is False


def test_versions_compare_as_plain_strings():
    assert should_skip(_build("foo", "1.0.0"), PREVIOUS) is False
    assert should_skip(_build("foo", "1.0 "), PREVIOUS) is False


def test_new_package_is_built():
    assert should_skip(_build("baz", "1.0"), PREVIOUS) is False


def test_no_previous_index_means_build():
    assert should_skip(_build("foo", "1.0"), None) is False
    assert find_previous_record("foo", None) is None


def test_find_previous_record_matches_by_name():
    assert find_previous_record("bar", PREVIOUS).version == "2.0"

from tokenvm.version import VERSION, SemanticVersion


def test_version_string():
    assert VERSION == SemanticVersion(0, 0, 1)
    assert str(VERSION) == "v0.0.1"


def test_custom_version_string():
    assert str(SemanticVersion(1, 2, 3)) == "v1.2.3"


def test_version_ordering():
    assert SemanticVersion(0, 0, 1) < SemanticVersion(0, 1, 0) < SemanticVersion(1, 0, 0)
    assert VERSION == SemanticVersion(0, 0, 1)
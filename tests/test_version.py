import json

from addonmgr import version


def test_to_string_is_json_with_build_info():
    data = json.loads(version.to_string())
    assert data == {
        "version": version.VERSION,
        "gitCommit": version.GIT_COMMIT,
        "buildDate": version.BUILD_DATE,
    }


def test_default_values():
    data = json.loads(version.to_string())
    assert data["version"] == "v0.7.1"
    assert data["gitCommit"] == "NONE"
    assert data["buildDate"] == "UNKNOWN"


def test_to_string_format():
    assert version.to_string().startswith('{"version": ')
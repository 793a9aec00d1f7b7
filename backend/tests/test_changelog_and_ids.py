import json
import re

from twx.services.changelog import DEFAULT_VERSION, current_version, ensure_changelog, read_changelog
from twx.services.identifiers import generate_id


def test_generated_ids_have_prefix_timestamp_and_suffix() -> None:
    value = generate_id("insp")
    assert re.fullmatch(r"insp_\d{13}_[0-9a-z]{9}", value)
    assert generate_id("insp") != value


def test_missing_changelog_is_created_with_defaults(tmp_path) -> None:
    path = tmp_path / "data" / "changelog.json"
    ensure_changelog(path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["changes"] == []
    assert data["metadata"]["currentVersion"] == DEFAULT_VERSION


def test_invalid_changelog_is_rewritten(tmp_path) -> None:
    path = tmp_path / "changelog.json"
    path.write_text("{not json", encoding="utf-8")

    changelog = read_changelog(path)
    assert changelog["changes"] == []
    assert current_version(path) == DEFAULT_VERSION


def test_existing_changelog_is_read_as_is(tmp_path) -> None:
    path = tmp_path / "changelog.json"
    path.write_text(
        json.dumps({
            "changes": [{"version": "1.2.0", "description": "QR lookup"}],
            "metadata": {"currentVersion": "1.2.0"},
        }),
        encoding="utf-8",
    )

    assert read_changelog(path)["changes"][0]["description"] == "QR lookup"
    assert current_version(path) == "1.2.0"

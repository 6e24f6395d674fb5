from pathlib import Path

PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"


def test_project_metadata_does_not_publish_design_documents():
    text = PYPROJECT.read_text(encoding="utf-8")
    assert 'name = "recallbench"' in text
    assert "SPEC_FULL.md" not in text
    assert "readme" not in text

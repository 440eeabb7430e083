from pathlib import Path

import pytest
from pydantic import ValidationError

from repo2pdf.config import FileEntry, Theme, language_for_extension
from repo2pdf.settings import RenderOptions, Settings, env_defaults, split_csv


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings(source=".", output=Path("out.pdf"))

    assert settings.theme is Theme.LIGHT
    assert settings.metadata is True
    assert settings.max_size == 1000
    assert settings.lang == "en"
    assert settings.mono_font is None
    assert settings.font is None
    assert settings.bold_font is None


@pytest.mark.unit
def test_render_options_from_settings() -> None:
    settings = Settings(
        source=".",
        output=Path("out.pdf"),
        theme="dark",
        lang_filter=".PY, js,,",
        exclude="docs/, *.md",
        max_size=2,
        line_numbers=True,
        git_history=True,
    )

    options = settings.render_options()

    assert options.theme is Theme.DARK
    assert options.extension_filter == frozenset({"py", "js"})
    assert options.exclude_patterns == frozenset({"docs/", "*.md"})
    assert options.max_file_size_bytes == 2048
    assert options.show_line_numbers is True
    assert options.include_history is True


@pytest.mark.unit
def test_render_options_without_filter_keeps_everything() -> None:
    options = Settings(source=".", output=Path("out.pdf")).render_options()

    assert options.extension_filter is None
    assert options.max_file_size_bytes == 1000 * 1024


@pytest.mark.unit
def test_render_options_are_frozen() -> None:
    options = RenderOptions()

    with pytest.raises(ValidationError):
        options.theme = Theme.DARK  # type: ignore[misc]


@pytest.mark.unit
def test_split_csv() -> None:
    assert split_csv(" a, b ,,c ") == ["a", "b", "c"]
    assert split_csv("") == []


@pytest.mark.unit
def test_env_defaults_merges_dotenv_and_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("REPO2PDF_THEME=light\nREPO2PDF_LANG=tr\nOTHER=1\n", encoding="utf-8")
    monkeypatch.setenv("REPO2PDF_THEME", "dark")

    values = env_defaults(str(env_file))

    assert values["theme"] == "dark"
    assert values["lang"] == "tr"
    assert "other" not in values


@pytest.mark.unit
def test_file_entry_language() -> None:
    entry = FileEntry(path=Path("/repo/src/app.TS"), rel="src/app.TS")

    assert entry.extension == "ts"
    assert entry.language == "typescript"
    assert language_for_extension(".weird") == "weird"
    assert language_for_extension("") == ""

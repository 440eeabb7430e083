from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo2pdf import __version__, cli
from repo2pdf.config import Theme
from repo2pdf.exceptions import NoEligibleFilesError
from repo2pdf.progress import ConsoleProgressSink, NullProgressSink, ProgressState

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.fixture(autouse=True)
def _no_env_defaults(mocker: MockerFixture) -> None:
    mocker.patch.object(cli, "env_defaults", return_value={})


@pytest.mark.unit
def test_parse_args_defaults() -> None:
    settings = cli.parse_args(["src", "out.pdf"])

    assert settings.source == "src"
    assert settings.output == Path("out.pdf")
    assert settings.theme is Theme.LIGHT
    assert settings.metadata is True
    assert settings.line_numbers is False
    assert settings.max_size == 1000
    assert settings.mono_font is None


@pytest.mark.unit
def test_parse_args_short_options() -> None:
    settings = cli.parse_args(
        [
            "https://github.com/user/project.git",
            "out.pdf",
            "-t",
            "dark",
            "-l",
            "py,md",
            "-n",
            "-g",
            "-c",
            "-e",
            "docs/,*.lock",
            "-s",
            "50",
            "-p",
            "--no-metadata",
            "--lang",
            "tr",
            "--strict-history",
        ],
    )

    assert settings.theme is Theme.DARK
    assert settings.lang_filter == "py,md"
    assert settings.line_numbers is True
    assert settings.git_history is True
    assert settings.commit_info is True
    assert settings.exclude == "docs/,*.lock"
    assert settings.max_size == 50
    assert settings.progress is True
    assert settings.metadata is False
    assert settings.lang == "tr"
    assert settings.strict_history is True


@pytest.mark.unit
def test_parse_args_rejects_unknown_theme() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["src", "out.pdf", "--theme", "blue"])


@pytest.mark.unit
def test_env_values_become_defaults(mocker: MockerFixture) -> None:
    mocker.patch.object(
        cli,
        "env_defaults",
        return_value={"theme": "dark", "line_numbers": "true", "no_metadata": "1", "max_size": "7", "mono_font": ""},
    )

    settings = cli.parse_args(["src", "out.pdf"])
    overridden = cli.parse_args(["src", "out.pdf", "--theme", "light"])

    assert settings.theme is Theme.DARK
    assert settings.line_numbers is True
    assert settings.metadata is False
    assert settings.max_size == 7
    assert settings.mono_font is None
    assert overridden.theme is Theme.LIGHT


@pytest.mark.unit
def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(["--version"])

    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
def test_main_success_message(mocker: MockerFixture, capsys: pytest.CaptureFixture[str]) -> None:
    convert = mocker.patch.object(cli, "convert_to_pdf", return_value=ProgressState(total=1, processed=1))

    code = cli.main(["src", "out.pdf"])

    assert code == 0
    assert "PDF successfully created: out.pdf" in capsys.readouterr().out
    assert isinstance(convert.call_args.kwargs["sink"], NullProgressSink)


@pytest.mark.unit
def test_main_uses_console_sink_with_progress(mocker: MockerFixture) -> None:
    convert = mocker.patch.object(cli, "convert_to_pdf", return_value=ProgressState(total=0))

    cli.main(["src", "out.pdf", "-p"])

    assert isinstance(convert.call_args.kwargs["sink"], ConsoleProgressSink)


@pytest.mark.unit
def test_main_reports_errors(mocker: MockerFixture, capsys: pytest.CaptureFixture[str]) -> None:
    mocker.patch.object(cli, "convert_to_pdf", side_effect=NoEligibleFilesError(root=Path("/repo")))

    code = cli.main(["src", "out.pdf", "--lang", "tr"])

    assert code == 1
    err = capsys.readouterr().err
    assert "Hata: No eligible files after filtering." in err


@pytest.mark.unit
def test_main_configures_log_file(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch.object(cli, "convert_to_pdf", return_value=ProgressState(total=0))
    setup = mocker.patch.object(cli, "setup_logging")

    cli.main(["src", "out.pdf", "--log-file", str(tmp_path / "run.log")])

    setup.assert_called_once_with(str(tmp_path / "run.log"))


@pytest.mark.unit
def test_font_options() -> None:
    settings = cli.parse_args(["src", "out.pdf", "--font", "Sans.ttf", "--bold-font", "Sans-Bold.ttf"])

    assert settings.font == Path("Sans.ttf")
    assert settings.bold_font == Path("Sans-Bold.ttf")


@pytest.mark.unit
@pytest.mark.parametrize("value", ["lots", "-3", "1.5"])
def test_malformed_env_max_size_is_a_usage_error(
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
    value: str,
) -> None:
    mocker.patch.object(cli, "env_defaults", return_value={"max_size": value})

    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(["src", "out.pdf"])

    assert excinfo.value.code == 2
    assert "REPO2PDF_MAX_SIZE" in capsys.readouterr().err


@pytest.mark.unit
def test_negative_max_size_option_is_rejected(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(["src", "out.pdf", "--max-size", "-1"])

    assert excinfo.value.code == 2
    assert "--max-size" in capsys.readouterr().err

import pytest
from pydantic import ValidationError
from pytest_mock import MockerFixture

from llm_dump import settings as settings_module
from llm_dump.config import OutputFormat
from llm_dump.settings import Settings, load_api_key


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.out_fmt is OutputFormat.XML
    assert settings.xml_tag == "file"
    assert settings.timeout == 15
    assert settings.pane_lines == 0
    assert settings.list_only is False
    assert settings.tree is False
    assert not settings.filter


@pytest.mark.unit
def test_sources_default_to_current_directory() -> None:
    assert Settings().sources() == ["."]
    assert Settings(dirs=["a", "b"]).sources() == ["a", "b"]
    assert Settings(urls=["https://a.dev"]).sources() == []
    assert Settings(panes=["current"]).sources() == []


@pytest.mark.unit
def test_extensions_are_normalized() -> None:
    settings = Settings(extensions=[".PY", " go ", ""])

    assert settings.extensions == ["py", "go", ""]


@pytest.mark.unit
def test_out_fmt_is_validated() -> None:
    assert Settings(out_fmt="MD").out_fmt is OutputFormat.MD
    with pytest.raises(ValidationError):
        Settings(out_fmt="html")


@pytest.mark.unit
def test_settings_are_frozen_and_strict() -> None:
    settings = Settings()

    with pytest.raises(ValidationError):
        settings.tree = True  # type: ignore[misc]
    with pytest.raises(ValidationError):
        Settings(unknown=True)  # type: ignore[call-arg]


@pytest.mark.unit
@pytest.mark.parametrize(("field", "value"), [("timeout", 0), ("pane_lines", -1), ("xml_tag", "")])
def test_out_of_range_values_are_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        Settings(**{field: value})


@pytest.mark.unit
def test_load_api_key_reads_environment(mocker: MockerFixture) -> None:
    mocker.patch.object(settings_module, "ENV_FILE", "")
    mocker.patch.dict("os.environ", {"EXA_API_KEY": " abc "})

    assert load_api_key() == "abc"


@pytest.mark.unit
def test_load_api_key_missing(mocker: MockerFixture) -> None:
    mocker.patch.object(settings_module, "ENV_FILE", "")
    mocker.patch.dict("os.environ", {}, clear=True)

    assert load_api_key() == ""

from __future__ import annotations

import pytest

from src.funds.config.settings import (
    PRESETS_DIR,
    FundsSettings,
    MatcherSettings,
    SettingsError,
    load_matcher_preset,
    load_settings,
    settings_from_dict,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("FUNDS_CONFIG_PATH", "FUNDS_ROSTER_PATH", "FUNDS_MATCHER", "FUNDS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def presets_dir(tmp_path):
    d = tmp_path / "presets"
    d.mkdir()
    (d / "acme.yaml").write_text(
        "name: level\n"
        "properties:\n"
        "  matcher_amount_1250: \"415,300\"\n"
        "  matcher_amount_volunteer: \"0,25\"\n",
        encoding="utf-8",
    )
    return d


def test_defaults() -> None:
    settings = FundsSettings()
    assert settings.matcher.name == "none"
    assert settings.matcher.properties == {}
    assert settings.log_level == "INFO"
    assert settings.shared_funds_location is None


def test_shared_funds_default_to_roster() -> None:
    assert FundsSettings(roster_path="team.xlsx").shared_funds_location == "team.xlsx"
    assert (
        FundsSettings(roster_path="team.xlsx", funds_path="funds.xlsx").shared_funds_location
        == "funds.xlsx"
    )


def test_matcher_properties_are_strings() -> None:
    matcher = MatcherSettings(
        name="level",
        properties={"matcher_amount_1250": "415,300", "matcher_spreadsheet": "emp.xlsx", "x": 5},
    )
    assert matcher.properties["x"] == "5"
    assert matcher.employee_spreadsheet == "emp.xlsx"
    assert matcher.employee_sheet_name is None


def test_load_settings_from_yaml_with_preset(tmp_path, presets_dir) -> None:
    config = tmp_path / "funds.yaml"
    config.write_text(
        "roster_path: ~/team.xlsx\n"
        "roster_sheet: Roster\n"
        "log_level: debug\n"
        "matcher:\n"
        "  preset: acme\n"
        "  properties:\n"
        "    matcher_amount_volunteer: \"0,10\"\n"
        "    matcher_amount_1800: \"600,400\"\n",
        encoding="utf-8",
    )

    settings = load_settings(str(config), presets_dir=presets_dir)

    assert settings.roster_path == "~/team.xlsx"
    assert settings.roster_sheet == "Roster"
    assert settings.log_level == "DEBUG"
    assert settings.matcher.name == "level"
    assert settings.matcher.preset == "acme"
    assert settings.matcher.properties == {
        "matcher_amount_1250": "415,300",
        "matcher_amount_volunteer": "0,10",
        "matcher_amount_1800": "600,400",
    }


def test_environment_overrides(tmp_path, presets_dir, monkeypatch) -> None:
    config = tmp_path / "funds.yaml"
    config.write_text("roster_path: a.xlsx\nmatcher:\n  preset: acme\n", encoding="utf-8")
    monkeypatch.setenv("FUNDS_CONFIG_PATH", str(config))
    monkeypatch.setenv("FUNDS_ROSTER_PATH", "b.xlsx")
    monkeypatch.setenv("FUNDS_MATCHER", "employee_only")
    monkeypatch.setenv("FUNDS_LOG_LEVEL", "warning")

    settings = load_settings(presets_dir=presets_dir)

    assert settings.roster_path == "b.xlsx"
    assert settings.matcher.name == "employee_only"
    assert settings.matcher.properties["matcher_amount_1250"] == "415,300"
    assert settings.log_level == "WARNING"


def test_missing_explicit_file_is_an_error(tmp_path) -> None:
    with pytest.raises(SettingsError, match="not found"):
        load_settings(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize(
    "text, message",
    [
        ("- a\n- b\n", "mapping at the top level"),
        ("roster_path: [unclosed\n", "Invalid YAML"),
        ("log_level: LOUD\n", "Unknown log level"),
        ("matcher: level\n", "matcher must be a mapping"),
        ("matcher:\n  preset: missing\n", "preset not found"),
    ],
)
def test_invalid_settings(tmp_path, presets_dir, text: str, message: str) -> None:
    config = tmp_path / "funds.yaml"
    config.write_text(text, encoding="utf-8")
    with pytest.raises(SettingsError, match=message):
        load_settings(str(config), presets_dir=presets_dir)


def test_settings_from_dict_without_matcher() -> None:
    settings = settings_from_dict({"roster_path": "team.xlsx"})
    assert settings.matcher == MatcherSettings()


@pytest.mark.parametrize("preset", ["big_lots_2014", "big_lots_2015"])
def test_bundled_presets_load(preset: str) -> None:
    doc = load_matcher_preset(preset)
    settings = settings_from_dict({"matcher": {"preset": preset}})

    assert doc["name"] == "employee_only"
    assert settings.matcher.name == "employee_only"
    assert "matcher_amount_volunteer" in settings.matcher.properties
    assert (PRESETS_DIR / f"{preset}.yaml").exists()


def test_shared_funds_sheet_follows_the_roster_sheet() -> None:
    assert FundsSettings(roster_path="team.xlsx", roster_sheet="Roster").shared_funds_sheet == "Roster"
    assert (
        FundsSettings(roster_path="team.xlsx", roster_sheet="Roster", funds_sheet="Funds").shared_funds_sheet
        == "Funds"
    )
    assert (
        FundsSettings(roster_path="team.xlsx", roster_sheet="Roster", funds_path="funds.xlsx").shared_funds_sheet
        is None
    )

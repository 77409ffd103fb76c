from journal_analytics.config.app_config import (
    config_from_mapping,
    default_app_config,
    default_slot_windows,
    load_app_config,
)


def test_defaults_when_file_missing(tmp_path):
    config = load_app_config(tmp_path / "missing.toml")

    assert config == default_app_config()
    assert config.app.port == 8000
    assert config.app.log_level == "INFO"
    assert config.analytics.day_timezone == "UTC"
    assert config.analytics.slot_timezone == "Asia/Kolkata"
    assert config.analytics.matching_policy == "weighted_average"
    assert config.analytics.slots == {
        "Morning Session": (555, 676),
        "Middle Session": (676, 796),
        "Afternoon Session": (825, 931),
    }


def test_reads_toml_file(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text(
        """
[app]
port = 9000
log_level = "debug"

[analytics]
day_timezone = "Asia/Kolkata"
matching_policy = "STRICT_FIFO"
currency_symbol = "$"

[analytics.slots]
Open = "09:30-10:00"
Close = { start = "15:00", end = "15:59" }
Broken = "late"
""",
        encoding="utf-8",
    )
    config = load_app_config(path)

    assert config.app.port == 9000
    assert config.app.log_level == "DEBUG"
    assert config.analytics.day_timezone == "Asia/Kolkata"
    assert config.analytics.matching_policy == "strict_fifo"
    assert config.analytics.currency_symbol == "$"
    assert config.analytics.slots == {"Open": (570, 601), "Close": (900, 960)}


def test_invalid_slots_fall_back_to_defaults():
    config = config_from_mapping({"analytics": {"slots": {"Backwards": "12:00-09:00"}}})
    assert config.analytics.slots == default_slot_windows()


def test_blank_values_use_defaults():
    config = config_from_mapping({"app": {"log_level": " "}, "analytics": {"broker_timezone": ""}})
    assert config.app.log_level == "INFO"
    assert config.analytics.broker_timezone == "Asia/Kolkata"

import pytest

from gchat.settings import Settings, load_persisted_config, resolve_settings


def test_defaults_when_nothing_is_configured(tmp_path):
    settings = resolve_settings(["--config", str(tmp_path / "absent.json")], environ={})
    assert settings == Settings()


def test_config_file_overrides_defaults_and_cli_overrides_config(tmp_path):
    cfg = tmp_path / "gchat.json"
    cfg.write_text(
        """
        {
            // persisted preferences
            "model": "grok-3",
            "level": 4,
            "temperature": 1,
            "escalation": false
        }
        """,
        encoding="utf-8",
    )

    settings = resolve_settings(["--config", str(cfg), "-l", "1", "-f", "other.md"], environ={})

    assert settings.model == "grok-3"
    assert settings.level == 1
    assert settings.temperature == 1.0
    assert settings.escalation is False
    assert settings.chat_file == "other.md"
    assert settings.file_requests is True


def test_config_path_from_environment(tmp_path):
    cfg = tmp_path / "custom.json"
    cfg.write_text('{"api_timeout": 30}', encoding="utf-8")
    settings = resolve_settings([], environ={"GCHAT_CONFIG_PATH": str(cfg)})
    assert settings.api_timeout == 30.0


def test_flags_disable_features(tmp_path):
    settings = resolve_settings(
        ["--config", str(tmp_path / "x.json"), "--no-file-requests", "--no-escalation", "--no-sound", "--once"],
        environ={},
    )
    assert (settings.file_requests, settings.escalation, settings.sound, settings.once) == (False, False, False, True)


@pytest.mark.parametrize(
    "content",
    ['{"colour": "blue"}', '{"level": "high"}', '{"sound": 1}', "[1, 2]", "{not json"],
)
def test_bad_config_file_exits(tmp_path, content):
    cfg = tmp_path / "bad.json"
    cfg.write_text(content, encoding="utf-8")
    with pytest.raises(SystemExit):
        resolve_settings(["--config", str(cfg)], environ={})


def test_bad_arguments_exit(tmp_path):
    with pytest.raises(SystemExit):
        resolve_settings(["--level", "many"], environ={})
    with pytest.raises(SystemExit):
        resolve_settings(["--config", str(tmp_path / "x.json"), "--level", "-1"], environ={})


def test_missing_config_file_is_empty(tmp_path):
    assert load_persisted_config(tmp_path / "nope.json") == {}

"""INI configuration file tests."""

from pathlib import Path

import pytest

from fintube_cli.exceptions import ConfigurationError
from fintube_cli.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "fintube" / "config.ini"


class TestConfigManager:
    def test_save_and_load(self, config_file: Path) -> None:
        ConfigManager(config_file).save_new_config(
            {
                "exec_ytdl": "/opt/yt-dlp",
                "custom_ytdl_output_template": "-%(title)s [%(id)s].%(ext)s",
                "libraries": ["/media/music", "/media/videos"],
                "default_library": "/media/music",
                "max_workers": 4,
            }
        )

        config = ConfigManager(config_file).load_config()

        assert config.exec_ytdl == "/opt/yt-dlp"
        assert config.custom_ytdl_output_template == "-%(title)s [%(id)s].%(ext)s"
        assert config.libraries == ["/media/music", "/media/videos"]
        assert config.default_library == "/media/music"
        assert config.max_workers == 4
        assert config.request_timeout == 300.0
        assert config.config_path == str(config_file.parent)

    def test_missing_file(self, config_file: Path) -> None:
        with pytest.raises(ConfigurationError, match="fintube init"):
            ConfigManager(config_file).load_config()

    def test_cli_options_override_file(self, config_file: Path) -> None:
        ConfigManager(config_file).save_new_config({"max_workers": 4})

        config = ConfigManager(config_file).load_config({"max_workers": 8})

        assert config.max_workers == 8

    def test_missing_keys_are_migrated(self, config_file: Path) -> None:
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nexec_ytdl = /opt/yt-dlp\n")

        config = ConfigManager(config_file).load_config()

        assert config.exec_ytdl == "/opt/yt-dlp"
        assert config.max_workers == 2
        content = config_file.read_text()
        assert "max_workers = 2" in content
        assert "sponsorblock_url = https://sponsor.ajay.app/api/skipSegments" in content

    def test_invalid_number(self, config_file: Path) -> None:
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nexec_ytdl = /opt/yt-dlp\nmax_workers = many\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_invalid_value(self, config_file: Path) -> None:
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nexec_ytdl = /opt/yt-dlp\nmax_workers = 99\n")

        with pytest.raises(ConfigurationError, match="validation failed"):
            ConfigManager(config_file).load_config()

    def test_unparseable_file(self, config_file: Path) -> None:
        config_file.parent.mkdir(parents=True)
        config_file.write_text("exec_ytdl = /opt/yt-dlp\n")

        with pytest.raises(ConfigurationError, match="parsing"):
            ConfigManager(config_file).load_config()

    def test_invalid_settings_are_not_saved(self, config_file: Path) -> None:
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).save_new_config({"max_workers": 0})

        assert not config_file.exists()

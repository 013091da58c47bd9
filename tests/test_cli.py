import yaml
from typer.testing import CliRunner

from localpulse.cli.app import app
from localpulse.config.catalog import load_catalog

runner = CliRunner()


class TestCli:
    def test_init_writes_config_and_catalog(self, tmp_path):
        result = runner.invoke(app, ["init", "--config-dir", str(tmp_path), "--skip-db"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "config.yaml").exists()
        catalog = load_catalog(tmp_path / "sources.yaml")
        assert len(catalog.list_enabled_sources()) == 3
        assert [r.tag for r in catalog.list_regions()] == ["FL/Escambia"]

    def test_sources_list(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SOURCES_PATH", raising=False)
        runner.invoke(app, ["init", "--config-dir", str(tmp_path), "--skip-db"])

        result = runner.invoke(app, ["--config", str(tmp_path / "config.yaml"), "sources", "list"])

        assert result.exit_code == 0, result.output
        assert "WEAR-TV" in result.output
        assert "FL/Escambia" in result.output

    def test_missing_config_exits_1(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "absent.yaml"), "sources", "list"])

        assert result.exit_code == 1

    def test_invalid_window_end(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({}))

        result = runner.invoke(app, ["--config", str(config_path), "synthesize", "--window-end", "soon"])

        assert result.exit_code == 2

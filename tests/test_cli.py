from lightsync import cli


class TestCli:
    def test_defaults(self):
        args = cli.build_parser().parse_args([])
        config = cli.load_config(args)

        assert config.api.port == 8000
        assert config.devices == []

    def test_overrides_and_mock_devices(self, config_file):
        args = cli.build_parser().parse_args(
            [
                "--config", str(config_file),
                "--port", "9100",
                "--mock-devices", "2",
                "--led-count", "16",
            ]
        )
        config = cli.load_config(args)

        assert config.api.port == 9100
        assert config.retry.attempts == 5
        assert [d["name"] for d in config.devices] == ["A", "B", "Mock 1", "Mock 2"]
        assert config.devices[-1]["num_pixels"] == 16

    def test_bad_config_exits_nonzero(self, tmp_path, monkeypatch):
        path = tmp_path / "bad.yaml"
        path.write_text("unknown_key: 1\n")
        monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: None)

        assert cli.main(["--config", str(path)]) == 1

    def test_main_serves_app(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            cli.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs)
        )

        assert cli.main(["--mock-devices", "1", "--port", "9001"]) == 0
        assert calls == [{"host": "127.0.0.1", "port": 9001, "log_level": "info"}]

"""
Tests for the listener manager's startup checks and the CLI.

Nothing here binds a socket: serve() is replaced where a run would
otherwise start listening.
"""

import pytest

from s3proxy import server
from s3proxy.config.settings import BindAddress, Settings
from s3proxy.main import create_app
from s3proxy.server import StartupError, build_server, check_startup, load_settings, parse_args


def https_settings(cert: str = "", key: str = "") -> Settings:
    return Settings(web={
        "BindAddresses": [{"Port": 8443, "IsHttps": True}],
        "Https": {"Cert": cert, "Key": key},
    })


@pytest.fixture
def tls_files(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert")
    key.write_text("key")
    return str(cert), str(key)


@pytest.fixture
def no_serving(monkeypatch):
    calls = []

    async def fake_serve(app, settings):
        calls.append((app, settings))

    monkeypatch.setattr(server, "serve", fake_serve)
    monkeypatch.setattr(server, "configure_logging", lambda level, log_file=None: None)
    return calls


class TestCheckStartup:

    def test_plain_http_needs_nothing(self):
        check_startup(Settings())

    def test_https_without_files_is_fatal(self):
        with pytest.raises(StartupError, match="certificate"):
            check_startup(https_settings())

    def test_https_without_key_is_fatal(self, tls_files):
        cert, _ = tls_files

        with pytest.raises(StartupError, match="key"):
            check_startup(https_settings(cert, "/nonexistent/key.pem"))

    def test_https_with_files(self, tls_files):
        check_startup(https_settings(*tls_files))


class TestBuildServer:

    def test_https_listener_gets_tls_files(self, tls_files):
        settings = https_settings(*tls_files)
        app = create_app(settings)

        config = build_server(app, settings.web.bind_addresses[0], settings).config

        assert (config.host, config.port) == ("localhost", 8443)
        assert (config.ssl_certfile, config.ssl_keyfile) == tls_files

    def test_plain_listener_has_no_tls(self, tls_files):
        settings = https_settings(*tls_files)
        app = create_app(settings)

        config = build_server(app, BindAddress(host="127.0.0.1", port=8080), settings).config

        assert config.ssl_certfile is None
        assert config.ssl_keyfile is None


class TestRun:

    def test_missing_htpasswd_is_fatal(self, no_serving):
        settings = Settings(web={"EnableAuth": True, "HtpasswdFile": "/nonexistent/htpasswd"})

        with pytest.raises(StartupError, match="htpasswd"):
            server.run(settings)
        assert no_serving == []

    def test_run_serves_with_one_app(self, no_serving):
        settings = Settings(web={"BindAddresses": [{"Port": 1}, {"Port": 2}]})

        server.run(settings)

        assert len(no_serving) == 1
        app, passed = no_serving[0]
        assert passed is settings
        assert app.state.settings is settings


class TestCli:

    def test_parse_args(self):
        args = parse_args(["--config", "c.yaml", "--log-file", "out.log", "--log-level", "debug"])

        assert (args.config, args.log_file, args.log_level) == ("c.yaml", "out.log", "debug")

    def test_load_settings_without_config(self):
        settings = load_settings(parse_args(["--log-level", "error"]))

        assert settings.log_level == "ERROR"

    def test_load_settings_from_config(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("Buckets:\n  m: {}\nlog_level: DEBUG\n")

        settings = load_settings(parse_args(["--config", str(path)]))

        assert "m" in settings.buckets
        assert settings.log_level == "DEBUG"

    def test_main_fails_on_bad_config(self, tmp_path, no_serving):
        assert server.main(["--config", str(tmp_path / "missing.yaml")]) == 1

    def test_main_fails_on_startup_error(self, tmp_path, no_serving):
        path = tmp_path / "c.yaml"
        path.write_text("Web:\n  BindAddresses:\n    - IsHttps: true\n")

        assert server.main(["--config", str(path)]) == 1

    def test_main_runs(self, no_serving):
        assert server.main([]) == 0
        assert len(no_serving) == 1

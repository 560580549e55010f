"""
Unit tests for configuration loading.
"""

import textwrap

import pytest

from s3proxy.config.settings import BindAddress, ConfigurationError, Settings


def write(tmp_path, text: str, name: str = "s3proxy.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(text))
    return path


class TestDefaults:

    def test_single_plain_http_listener(self):
        settings = Settings()

        assert settings.web.bind_addresses == [BindAddress(host="localhost", port=7649, is_https=False)]
        assert settings.web.enable_auth is False
        assert settings.buckets == {}

    def test_reader_defaults(self):
        settings = Settings()

        assert settings.chunk_size == 1024 * 1024 * 1024
        assert settings.listing_max_keys == 100_000

    def test_log_level_is_normalised(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_is_rejected(self):
        with pytest.raises(ValueError):
            Settings(log_level="chatty")

    def test_bind_address_url(self):
        assert BindAddress(host="::1", port=80, is_https=True).url == "https://[::1]:80"
        assert BindAddress().url == "http://localhost:7649"


class TestFromYaml:

    def test_camel_case_keys(self, tmp_path):
        path = write(tmp_path, """
            Web:
              BindAddresses:
                - Host: 0.0.0.0
                  Port: 8080
                - Host: 0.0.0.0
                  Port: 8443
                  IsHttps: true
              Https:
                Cert: /etc/cert.pem
                Key: /etc/key.pem
              EnableAuth: true
              HtpasswdFile: /etc/htpasswd
            Buckets:
              photos:
                Bucket: photo-archive
                Region: eu-west-1
                Key: AKIAEXAMPLE
                Secret: s3cr3t
        """)

        settings = Settings.from_yaml(path)

        assert [a.port for a in settings.web.bind_addresses] == [8080, 8443]
        assert settings.web.bind_addresses[1].is_https
        assert settings.web.https.cert == "/etc/cert.pem"
        assert settings.web.enable_auth
        assert settings.web.htpasswd_file == "/etc/htpasswd"
        assert settings.buckets["photos"].bucket == "photo-archive"
        assert settings.buckets["photos"].secret == "s3cr3t"

    def test_snake_case_keys(self, tmp_path):
        path = write(tmp_path, """
            web:
              bind_addresses:
                - host: 127.0.0.1
                  port: 9000
            buckets:
              logs: {}
            chunk_size: 4096
        """)

        settings = Settings.from_yaml(path)

        assert settings.web.bind_addresses[0].host == "127.0.0.1"
        assert settings.chunk_size == 4096
        assert "logs" in settings.buckets

    def test_json_is_accepted(self, tmp_path):
        path = write(tmp_path, '{"Buckets": {"m": {"Region": "ap-south-1"}}}', "s3proxy.json")

        assert Settings.from_yaml(path).buckets["m"].region == "ap-south-1"

    def test_overrides_win(self, tmp_path):
        path = write(tmp_path, "log_level: INFO\n")

        settings = Settings.from_yaml(path, log_level="warning", log_file=None)

        assert settings.log_level == "WARNING"
        assert settings.log_file is None

    def test_empty_file_gives_defaults(self, tmp_path):
        assert Settings.from_yaml(write(tmp_path, "")).web.bind_addresses[0].port == 7649

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Unable to read"):
            Settings.from_yaml(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Malformed"):
            Settings.from_yaml(write(tmp_path, "Web: [unclosed\n"))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Malformed"):
            Settings.from_yaml(write(tmp_path, "- a\n- b\n"))

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Malformed"):
            Settings.from_yaml(write(tmp_path, "Web:\n  BindAddresses:\n    - Port: not-a-port\n"))


class TestMountConfigs:

    def test_bucket_and_region_defaults(self):
        settings = Settings(buckets={"photos": {}, "logs": {"Bucket": "log-bucket", "Region": "eu-central-1"}})

        mounts = {m.name: m for m in settings.mount_configs()}

        assert (mounts["photos"].bucket, mounts["photos"].region) == ("photos", "us-west-1")
        assert (mounts["logs"].bucket, mounts["logs"].region) == ("log-bucket", "eu-central-1")

    def test_credentials_and_endpoint(self):
        settings = Settings(buckets={
            "m": {"key": "AKIA", "secret": "shh", "endpoint_url": "http://minio:9000"},
        })

        mount = settings.mount_configs()[0]

        assert (mount.access_key, mount.secret_key) == ("AKIA", "shh")
        assert mount.endpoint_url == "http://minio:9000"

#!/usr/bin/env python3
"""
Tests for the INI configuration reader and duration helpers.
"""

import os
import shutil
import sys
import tempfile
import textwrap
import unittest
from datetime import timedelta

# Add parent directory to the path so we can import the necessary modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddns_updater.config import read_config, read_global_config
from ddns_updater.exceptions import ConfigError
from ddns_updater.models import IPVersion
from ddns_updater.utils import format_local_time, format_timedelta, parse_duration


class TestDurations(unittest.TestCase):

    def test_parse_duration(self):
        self.assertEqual(parse_duration("5m"), 300)
        self.assertEqual(parse_duration("1h30m"), 5400)
        self.assertEqual(parse_duration("1d"), 86400)
        self.assertEqual(parse_duration("90"), 90)
        self.assertEqual(parse_duration(15), 15)
        self.assertIsNone(parse_duration("0"))
        self.assertEqual(parse_duration("0", allow_zero=True), 0)
        self.assertIsNone(parse_duration("5 minutes"))
        self.assertIsNone(parse_duration(""))

    def test_format_timedelta(self):
        self.assertEqual(format_timedelta(timedelta(seconds=3725)), "1h2m5s")
        self.assertEqual(format_timedelta(timedelta(minutes=5)), "5m")
        self.assertEqual(format_timedelta(timedelta(0)), "0s")

    def test_format_local_time(self):
        self.assertEqual(format_local_time(None), "")


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, "ddns_config.ini")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def write_config(self, content):
        with open(self.config_path, 'w', encoding='utf-8') as f:
            f.write(textwrap.dedent(content))

    def global_settings(self, environ=None):
        return read_global_config(config_file_path=self.config_path, project_root_dir=self.temp_dir,
                                  environ=environ or {})


class TestGlobalConfig(ConfigTestCase):

    def test_defaults_without_file(self):
        settings = self.global_settings()
        self.assertEqual(settings.period_seconds, 300)
        self.assertEqual(settings.http_timeout_seconds, 10)
        self.assertEqual(settings.listening_port, 8000)
        self.assertEqual(settings.root_url, "/")
        self.assertEqual(settings.data_dir, os.path.join(self.temp_dir, "data"))
        self.assertEqual(settings.backup_period_seconds, 0)
        self.assertEqual(settings.backup_directory, settings.data_dir)
        self.assertIsNone(settings.max_concurrent_updates)
        self.assertFalse(settings.debug_mode)

    def test_file_values_and_inline_comments(self):
        self.write_config("""
            [ddns]
            period = 10m ; every ten minutes
            ipv6_method = opendns
            root_url = ddns
            max_concurrent_updates = 4
            default_timezone = Asia/Seoul
        """)
        settings = self.global_settings()
        self.assertEqual(settings.period_seconds, 600)
        self.assertEqual(settings.ipv6_method, "opendns")
        self.assertEqual(settings.root_url, "/ddns")
        self.assertEqual(settings.max_concurrent_updates, 4)
        self.assertEqual(settings.default_timezone, "Asia/Seoul")

    def test_environment_overrides_file(self):
        self.write_config("""
            [ddns]
            period = 10m
            listening_port = 8000
        """)
        settings = self.global_settings({"PERIOD": "30s", "LISTENING_PORT": "9000", "DEBUG_MODE": "true"})
        self.assertEqual(settings.period_seconds, 30)
        self.assertEqual(settings.listening_port, 9000)
        self.assertTrue(settings.debug_mode)

    def test_invalid_values(self):
        for environ in ({"PERIOD": "soon"}, {"LISTENING_PORT": "99999"}, {"IPV4_METHOD": "carrier-pigeon"},
                        {"MAX_CONCURRENT_UPDATES": "0"}, {"HTTP_TIMEOUT": "0"}):
            with self.assertRaises(ConfigError, msg=str(environ)):
                self.global_settings(environ)


class TestRecordConfig(ConfigTestCase):

    def test_records_in_file_order(self):
        self.write_config("""
            [ddns]
            http_timeout = 5s

            [home]
            provider = DuckDNS
            domain = home.duckdns.org
            duckdns_token = abc

            [cf]
            provider = cloudflare
            domain = example.com
            host = @, www ,api
            ip_version = IPv6
            http_timeout = 20s
            cloudflare_token = t
        """)
        gs = self.global_settings()
        records = read_config(gs, config_file_path=self.config_path)

        self.assertEqual([r.fqdn for r in records],
                         ["home.duckdns.org", "example.com", "www.example.com", "api.example.com"])
        home = records[0]
        self.assertEqual(home.provider, "duckdns")
        self.assertEqual(home.host, "@")
        self.assertEqual(home.ip_version, IPVersion.IPV4)
        self.assertEqual(home.get("duckdns_token"), "abc")
        self.assertEqual(home.get("http_timeout_seconds"), 5)
        self.assertNotIn("provider", home.options)

        www = records[2]
        self.assertEqual(www.ip_version, IPVersion.IPV6)
        self.assertEqual(www.get("http_timeout_seconds"), 20)
        self.assertEqual(www.section_name, "cf")
        self.assertEqual(www.record_id, "cf:www")
        self.assertEqual(records[1].record_id, "cf")

    def test_legacy_owner_key(self):
        self.write_config("""
            [old]
            provider = noip
            domain = example.com
            owner = home
        """)
        records = read_config(self.global_settings(), config_file_path=self.config_path)
        self.assertEqual(records[0].host, "home")

    def test_semicolon_inside_value_is_kept(self):
        self.write_config("""
            [old]
            provider = noip
            domain = example.com
            noip_username = user ; the account name
            noip_password = pa;ss
            custom_url = https://dns.example.net/u?a=1;b=2
        """)
        record = read_config(self.global_settings(), config_file_path=self.config_path)[0]
        self.assertEqual(record.get("noip_password"), "pa;ss")
        self.assertEqual(record.get("custom_url"), "https://dns.example.net/u?a=1;b=2")
        self.assertEqual(record.get("noip_username"), "user")

    def test_duplicates_are_dropped(self):
        self.write_config("""
            [one]
            provider = noip
            domain = example.com
            host = www

            [two]
            provider = duckdns
            domain = example.com
            host = www, api
        """)
        records = read_config(self.global_settings(), config_file_path=self.config_path)
        self.assertEqual([(r.section_name, r.host) for r in records], [("one", "www"), ("two", "api")])

    def test_invalid_sections(self):
        for body in ("[x]\ndomain = example.com\n",
                     "[x]\nprovider = noip\n",
                     "[x]\nprovider = noip\ndomain = example.com\nip_version = ipv5\n"):
            self.write_config(body)
            with self.assertRaises(ConfigError, msg=body):
                read_config(self.global_settings(), config_file_path=self.config_path)

    def test_missing_file_has_no_records(self):
        self.assertEqual(read_config(self.global_settings(), config_file_path=self.config_path), [])


if __name__ == '__main__':
    unittest.main()

"""Tests for configuration loading."""

import unittest

from notion_mirror.config import DEFAULT_QPS, CrawlConfig, extract_root_id, load_config
from notion_mirror.errors import InvalidRequest


class TestExtractRootId(unittest.TestCase):
    """Verify root ids are taken from bare ids and share links."""

    def test_bare_id(self):
        self.assertEqual(extract_root_id(" abc123 "), "abc123")

    def test_share_link(self):
        link = "https://www.notion.so/acme/Team-Notes-0123456789abcdef0123456789abcdef"
        self.assertEqual(extract_root_id(link), "0123456789abcdef0123456789abcdef")

    def test_link_without_title(self):
        self.assertEqual(extract_root_id("https://www.notion.so/0123abcd/"), "0123abcd")

    def test_link_with_query(self):
        self.assertEqual(extract_root_id("https://www.notion.so/ws/Doc-ff00?pvs=4"), "ff00")

    def test_empty_rejected(self):
        with self.assertRaises(InvalidRequest):
            extract_root_id("")

    def test_link_without_path_rejected(self):
        with self.assertRaises(InvalidRequest):
            extract_root_id("https://www.notion.so/")


class TestLoadConfig(unittest.TestCase):
    """Verify explicit values win over the environment."""

    def test_from_env(self):
        config = load_config(env={"NOTION_TOKEN": "secret", "NOTION_ROOT_PAGE": "root1"})
        self.assertEqual(config, CrawlConfig(token="secret", root_id="root1"))
        self.assertEqual(config.qps, DEFAULT_QPS)

    def test_arguments_override_env(self):
        config = load_config(
            token="mine", page="other", env={"NOTION_TOKEN": "secret", "NOTION_ROOT_PAGE": "root1"}, qps=1.5
        )
        self.assertEqual(config.token, "mine")
        self.assertEqual(config.root_id, "other")
        self.assertEqual(config.qps, 1.5)

    def test_none_overrides_keep_defaults(self):
        config = load_config(token="t", page="p", env={}, jsonl_path=None, burst=None)
        self.assertIsNone(config.jsonl_path)
        self.assertEqual(config.burst, 5)

    def test_missing_token(self):
        with self.assertRaises(InvalidRequest):
            load_config(page="p", env={})

    def test_missing_page(self):
        with self.assertRaises(InvalidRequest):
            load_config(token="t", env={})


if __name__ == "__main__":
    unittest.main()

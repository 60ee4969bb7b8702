"""
Test cases for configuration loading
"""
import os
import tempfile
import shutil
import pytest

from commitbundle.bundle import MerkleBundle
from commitbundle.config import BundleConfig
from commitbundle.exceptions import ConfigError


class TestBundleConfig:
    """Test BundleConfig class"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, "commitbundle.yaml")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def write(self, text):
        with open(self.config_path, 'w') as f:
            f.write(text)

    def test_defaults_when_missing(self):
        config = BundleConfig(self.config_path)
        assert config.depth == 20
        assert config.hash_name == "sha256"
        assert config.bundle_path == "bundle.dat"
        assert config.log_level == "WARNING"
        assert config.log_file is None

    def test_partial_file_keeps_defaults(self):
        self.write("bundle:\n  depth: 8\n")
        config = BundleConfig(self.config_path)
        assert config.depth == 8
        assert config.hash_name == "sha256"
        assert config.bundle_path == "bundle.dat"

    def test_full_file(self):
        self.write(
            "bundle:\n"
            "  depth: 4\n"
            "  hash: SHA512\n"
            "storage:\n"
            "  path: /tmp/notes.dat\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  file: /tmp/commitbundle.log\n"
        )
        config = BundleConfig(self.config_path)
        assert config.hash_name == "sha512"
        assert config.bundle_path == "/tmp/notes.dat"
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/commitbundle.log"

        bundle = MerkleBundle.from_config(config)
        assert bundle.depth == 4
        assert bundle.hash_name == "sha512"

    def test_empty_file(self):
        self.write("")
        assert BundleConfig(self.config_path).depth == 20

    @pytest.mark.parametrize("text", [
        "bundle:\n  depth: -1\n",
        "bundle:\n  depth: 65\n",
        "bundle:\n  depth: deep\n",
        "bundle:\n  depth: true\n",
        "bundle:\n  hash: md5\n",
        "storage:\n  path: ''\n",
        "network:\n  port: 1\n",
        "bundle: 3\n",
        "- just\n- a list\n",
        "bundle: [unclosed\n",
    ])
    def test_invalid_config(self, text):
        self.write(text)
        with pytest.raises(ConfigError):
            BundleConfig(self.config_path)

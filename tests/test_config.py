import os
import tempfile
import unittest

from metacorr.config import P2Config, load_config
from metacorr.errors import ConfigError


class TestP2Config(unittest.TestCase):
    def test_defaults(self):
        config = P2Config().validate()
        self.assertEqual(config.max_lag, 100)
        self.assertEqual(config.min_base_quality, 13)
        self.assertEqual((config.min_mapq, config.max_mapq), (30, 50))
        self.assertEqual(config.genetic_code, 11)

    def test_resolved_workers(self):
        self.assertEqual(P2Config(workers=3).resolved_workers(), 3)
        self.assertEqual(P2Config(workers=0).resolved_workers(), os.cpu_count() or 1)

    def test_invalid_settings(self):
        for bad in (
            P2Config(max_lag=-1),
            P2Config(workers=-2),
            P2Config(min_mapq=40, max_mapq=30),
            P2Config(min_pairs=-1),
            P2Config(genetic_code=99),
        ):
            with self.assertRaises(ConfigError):
                bad.validate()

    def test_zero_max_lag_is_valid(self):
        self.assertEqual(P2Config(max_lag=0).validate().max_lag, 0)


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "p2.toml")

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, text):
        with open(self.path, "w") as f:
            f.write(text)

    def test_no_file(self):
        self.assertEqual(load_config(None, {}), P2Config())

    def test_toml_values(self):
        self._write("[p2]\nmax_lag = 300\nmin_base_quality = 20\nprogress = true\n")
        config = load_config(self.path)
        self.assertEqual(config.max_lag, 300)
        self.assertEqual(config.min_base_quality, 20)
        self.assertTrue(config.progress)

    def test_cli_overrides_toml(self):
        self._write("[p2]\nmax_lag = 300\nworkers = 4\n")
        config = load_config(self.path, {"max_lag": 50, "workers": None})
        self.assertEqual(config.max_lag, 50)
        self.assertEqual(config.workers, 4)

    def test_unknown_key(self):
        self._write("[p2]\nmaxlag = 300\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_other_tables_ignored(self):
        self._write("[merge]\nrank = 'S'\n")
        self.assertEqual(load_config(self.path), P2Config())

    def test_bad_toml(self):
        self._write("[p2\nmax_lag = ")
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_string_max_lag(self):
        self._write('[p2]\nmax_lag = "100"\n')
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_float_max_lag(self):
        self._write("[p2]\nmax_lag = 2.5\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_wrongly_typed_values(self):
        for text in (
            "[p2]\nworkers = 1.0\n",
            "[p2]\nmin_mapq = true\n",
            "[p2]\nmax_mapq = '50'\n",
            "[p2]\nmin_pairs = [1]\n",
            "[p2]\nprogress = 1\n",
            "[p2]\nlog_file = 3\n",
        ):
            self._write(text)
            with self.assertRaises(ConfigError, msg=text):
                load_config(self.path)

    def test_validation_applies(self):
        with self.assertRaises(ConfigError):
            load_config(None, {"min_mapq": 60})

    def test_missing_file(self):
        with self.assertRaises(OSError):
            load_config(os.path.join(self.tmpdir.name, "missing.toml"))


if __name__ == "__main__":
    unittest.main()

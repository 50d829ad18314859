# File: tests/integration/test_main_app.py
"""
Main application tests: the command-line entry point end to end.
"""

import io
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from smartpark.main import main, parse_args


class TestMainFunction(unittest.TestCase):
    """Test main() with configuration from the environment and from files"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        # Keep the test run's own logging setup intact
        patcher = patch('smartpark.main.logging.basicConfig')
        self.mock_logging_config = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_main(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with patch.dict(os.environ, {}, clear=True), redirect_stdout(stdout), redirect_stderr(stderr):
            exit_code = main(argv)
        return exit_code, stdout.getvalue(), stderr.getvalue()

    def test_demo_with_defaults(self):
        """Test the demo runs against the in-memory store"""
        exit_code, output, _ = self.run_main(["--demo"])

        self.assertEqual(exit_code, 0)
        self.mock_logging_config.assert_called_once()
        self.assertIn('"fee":"40.00"', output)
        self.assertIn('"occupied_slots": 2', output)

    def test_demo_with_sql_config(self):
        """Test the demo runs against SQLite with events disabled"""
        path = os.path.join(self.temp_dir, "smartpark.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("database:\n  url: 'sqlite://'\nevents:\n  broker: none\n")

        exit_code, output, _ = self.run_main(["--config", path, "--demo"])

        self.assertEqual(exit_code, 0)
        self.assertIn('"occupied_slots": 2', output)

    def test_without_demo(self):
        """Test main wires the services and exits cleanly"""
        exit_code, output, _ = self.run_main([])

        self.assertEqual(exit_code, 0)
        self.assertEqual(output, "")

    def test_invalid_configuration(self):
        """Test configuration errors exit with status 2"""
        exit_code, _, errors = self.run_main(["--config", os.path.join(self.temp_dir, "missing.yaml")])
        self.assertEqual(exit_code, 2)
        self.assertIn("Invalid configuration", errors)

        path = os.path.join(self.temp_dir, "bad.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("events:\n  broker: carrier-pigeon\n")

        exit_code, _, errors = self.run_main(["--config", path])
        self.assertEqual(exit_code, 2)
        self.mock_logging_config.assert_not_called()

    def test_parse_args(self):
        """Test command-line parsing"""
        args = parse_args(["--config", "smartpark.yaml", "--demo"])

        self.assertEqual(args.config, "smartpark.yaml")
        self.assertTrue(args.demo)
        self.assertFalse(parse_args([]).demo)


if __name__ == '__main__':
    unittest.main()

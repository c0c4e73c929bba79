"""
End-to-end tests for the deporder command line.
Runs the CLI in a subprocess against .dep and .xml sources written to a temp directory.
"""
import json
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


class DeporderCliTest(unittest.TestCase):
    """Test suite for the deporder CLI"""

    @classmethod
    def setUpClass(cls):
        """Set up a dependency directory shared by all tests"""
        cls.project_root = Path(__file__).parent.parent
        cls._tmp = tempfile.TemporaryDirectory()
        cls.work_dir = Path(cls._tmp.name)

        cls.dep_dir = cls.work_dir / "deps"
        cls.dep_dir.mkdir()
        (cls.dep_dir / "gtk3.dep").write_text("1 glib2\n2 cairo\n3 cups\n4 xorg\n")
        (cls.dep_dir / "cairo.dep").write_text("1 glib2\n2 pixman\n")
        (cls.dep_dir / "pixman.dep").write_text("# cycle back through cairo\n1 cairo\n")

        cls.xml_file = cls.work_dir / "packages.xml"
        cls.xml_file.write_text(
            '<packages>'
            '<package name="app"><dependency status="required" name="lib"/></package>'
            '<package name="lib"><dependency status="recommended" name="util"/></package>'
            '</packages>'
        )

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def _run_deporder(self, *args):
        """Run the deporder module and return the completed process"""
        cmd = [sys.executable, "-m", "deporder", *[str(a) for a in args]]
        return subprocess.run(cmd, capture_output=True, text=True, cwd=self.project_root)

    def test_order_from_dep_files(self):
        """A recommended edge closing a cycle is rewired"""
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir)

        self.assertEqual(result.returncode, 0, result.stderr)
        order = result.stdout.split()
        self.assertEqual(order, ["glib2", "cairo", "pixman", "xorg", "gtk3"])

    def test_order_at_level_three(self):
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir, "--level", "3")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("cups", result.stdout.split())

    def test_order_from_xml(self):
        result = self._run_deporder("order", "app", "--source", self.xml_file, "--level", "1")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout.split(), ["lib", "app"])

    def test_json_output_file(self):
        output_file = self.work_dir / "order.json"
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir,
                                    "--format", "json", "--output", output_file)

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Output written to", result.stdout)
        with open(output_file) as f:
            document = json.load(f)
        self.assertEqual(document["root"], "gtk3")
        self.assertEqual(document["order"][-1], "gtk3")
        self.assertEqual(document["stats"]["rewires"], 1)

    def test_sbom_output(self):
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir, "--format", "sbom")

        self.assertEqual(result.returncode, 0, result.stderr)
        sbom = json.loads(result.stdout)
        self.assertEqual(sbom["bomFormat"], "CycloneDX")
        self.assertEqual([c["name"] for c in sbom["components"]], ["glib2", "cairo", "pixman", "xorg"])

    def test_trace(self):
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir, "--trace")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Trace:", result.stdout)
        trace_lines = result.stdout.split("Trace:\n", 1)[1].splitlines()
        self.assertTrue(trace_lines)
        self.assertTrue(trace_lines[0].strip().startswith("entered"))
        self.assertIn("rewired", result.stdout)

    def test_stats(self):
        result = self._run_deporder("stats", "gtk3", "--source", self.dep_dir)

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Dependency Tree Statistics:", result.stdout)
        self.assertIn("Total Packages: 5", result.stdout)

    def test_config_file(self):
        config_file = self.work_dir / "deporder.conf"
        config_file.write_text("DEP_LEVEL=1\n")
        result = self._run_deporder("order", "gtk3", "--source", self.dep_dir, "--config", config_file)

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout.split(), ["glib2", "xorg", "gtk3"])

    def test_malformed_source(self):
        bad_dir = self.work_dir / "bad"
        bad_dir.mkdir(exist_ok=True)
        (bad_dir / "app.dep").write_text("1\n")
        result = self._run_deporder("order", "app", "--source", bad_dir)

        self.assertEqual(result.returncode, 1)
        self.assertIn("Error:", result.stderr)

    def test_missing_source(self):
        result = self._run_deporder("order", "app", "--source", self.work_dir / "nothing.txt")
        self.assertEqual(result.returncode, 1)

    def test_invalid_level(self):
        result = self._run_deporder("order", "app", "--source", self.dep_dir, "--level", "5")
        self.assertEqual(result.returncode, 2)

    def test_no_command(self):
        result = self._run_deporder()
        self.assertEqual(result.returncode, 1)


if __name__ == "__main__":
    unittest.main()

# ========================
# tests/test_cli.py
# ========================

import csv
import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest import mock

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main
from src.pipeline import ContactImportPipeline
from src.store import InMemoryListStore
from src.utils.config import Config
from src.utils.data_generator import CONTACT_COLUMNS, DataGenerator


class TestDataGenerator(unittest.IsolatedAsyncioTestCase):
    """Generated files match their stats, and every injected error is rejected."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.file_path = os.path.join(self.temp_dir.name, "contacts.csv")

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_generated_errors_are_rejected(self):
        stats = DataGenerator(seed=7).generate_dataset(self.file_path, 300, error_rate=0.2)

        with open(self.file_path, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0], CONTACT_COLUMNS)
        self.assertEqual(len(rows) - 1, 300)
        self.assertEqual(stats['records_with_errors'], sum(stats['error_types'].values()))

        store = InMemoryListStore()
        contact_list = await store.create_list("Generated")
        report = await ContactImportPipeline(store, contact_list.id).run_file(self.file_path)

        self.assertEqual(report.stats.rows_seen, 300)
        self.assertEqual(report.stats.not_added, stats['records_with_errors'])

    def test_seed_is_reproducible(self):
        other = os.path.join(self.temp_dir.name, "again.csv")
        DataGenerator(seed=3).generate_dataset(self.file_path, 50)
        DataGenerator(seed=3).generate_dataset(other, 50)
        with open(self.file_path) as a, open(other) as b:
            self.assertEqual(a.read(), b.read())


class TestConfig(unittest.TestCase):

    def test_environment_and_overrides(self):
        with mock.patch.dict(os.environ, {'IMPORT_MAX_ACTIVE_BATCHES': '3'}):
            config = Config({'max_batch_size': 50, 'no_such_setting': 1})

        self.assertEqual(config.MAX_ACTIVE_BATCHES, 3)
        self.assertEqual(config.MAX_BATCH_SIZE, 50)
        self.assertNotIn('NO_SUCH_SETTING', config.to_dict())
        self.assertEqual(config.invalid_settings(), [])

    def test_invalid_settings(self):
        config = Config({'initial_batch_size': 500, 'store_backend': 'mongo'})
        self.assertEqual(config.invalid_settings(), ['max_batch_size', 'store_backend'])


class TestCommandLine(unittest.TestCase):
    """Run the CLI end to end against a SQLite file."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        root = self.temp_dir.name
        self.env = mock.patch.dict(os.environ, {
            'STORE_BACKEND': 'sqlite',
            'DATABASE_PATH': os.path.join(root, 'contacts.db'),
            'UPLOAD_DIR': os.path.join(root, 'uploaded'),
            'REPORT_DIR': os.path.join(root, 'reports'),
            'SAMPLE_FILE': os.path.join(root, 'raw', 'contacts.csv'),
        })
        self.env.start()

    def tearDown(self):
        self.env.stop()
        self.temp_dir.cleanup()

    def run_cli(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main.main(["--log-level", "WARNING", *argv])
        return code, out.getvalue()

    def test_create_list_and_import(self):
        input_file = os.path.join(self.temp_dir.name, "users.csv")
        report_file = os.path.join(self.temp_dir.name, "report.csv")
        with open(input_file, 'w', encoding='utf-8') as f:
            f.write("name,email,city\nAda,ada@example.com,\n,x@example.com,Rome\n")

        code, out = self.run_cli("create-list", "--title", "Newsletter", "--default", "city=Paris")
        self.assertEqual(code, 0)
        list_id = out.strip()

        code, out = self.run_cli("import", "--list-id", list_id, "--input", input_file, "--report", report_file)
        self.assertEqual(code, 0)
        self.assertIn("Added: 1", out)
        with open(report_file, encoding='utf-8') as f:
            self.assertEqual(f.read().split("\n")[:2], ["Added Users Count,Not Added Users Count,Total Users", "1,1,1"])

        code, out = self.run_cli("lists")
        self.assertIn("Newsletter  (1 subscribers)", out)

    def test_import_into_unknown_list(self):
        input_file = os.path.join(self.temp_dir.name, "users.csv")
        with open(input_file, 'w', encoding='utf-8') as f:
            f.write("name,email\nAda,ada@example.com\n")

        code, _ = self.run_cli("import", "--list-id", "c" * 32, "--input", input_file)
        self.assertEqual(code, 1)

    def test_bad_default_argument(self):
        code, _ = self.run_cli("create-list", "--title", "Broken", "--default", "city")
        self.assertEqual(code, 2)

    def test_config_file_overrides(self):
        config_file = os.path.join(self.temp_dir.name, "settings.json")
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump({"max_active_batches": 0}, f)

        code, _ = self.run_cli("--config", config_file, "lists")
        self.assertEqual(code, 2)

    def test_demo(self):
        code, out = self.run_cli("demo", "--rows", "120")
        self.assertEqual(code, 0)
        self.assertIn("Rows seen: 120", out)


if __name__ == '__main__':
    unittest.main()

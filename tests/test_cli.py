import unittest
from pathlib import Path

import fitz  # type: ignore
from click.testing import CliRunner

from itembank.cli import cli

CSV_CONTENT = (
    "MC,2+2?,3,incorrect,4,correct\n"
    "Primes?,2,correct,3,correct,4,incorrect\n"
    "The sky is blue,true\n"
    "Describe photosynthesis in your own words.\n"
).encode("utf-8")


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    def test_convert_then_print(self):
        with self.runner.isolated_filesystem():
            Path("quiz.csv").write_bytes(CSV_CONTENT)

            result = self.runner.invoke(cli, ["convert", "quiz.csv", "-t", "Unit Quiz", "-o", "out"])
            self.assertEqual(result.exit_code, 0, result.output)
            archive = Path("out/unit_quiz_qti.zip")
            self.assertTrue(archive.exists())

            result = self.runner.invoke(cli, ["print", str(archive), "-o", "out", "--paper-size", "letter"])
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertTrue(Path("out/unit_quiz_exam.pdf").read_bytes().startswith(b"%PDF"))
            self.assertTrue(Path("out/unit_quiz_answer_key.pdf").exists())

    def test_print_without_answer_key(self):
        with self.runner.isolated_filesystem():
            Path("quiz.csv").write_bytes(CSV_CONTENT)
            self.runner.invoke(cli, ["convert", "quiz.csv", "-t", "Solo"])

            result = self.runner.invoke(
                cli,
                ["print", "solo_qti.zip", "--no-answer-key", "--title", "Final", "--institution", "Springfield University"],
            )
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertTrue(Path("final_exam.pdf").exists())
            self.assertFalse(Path("final_answer_key.pdf").exists())
            with fitz.open("final_exam.pdf") as doc:
                self.assertIn("Springfield University", doc[0].get_text())

    def test_inspect_spreadsheet_and_archive(self):
        with self.runner.isolated_filesystem():
            Path("quiz.csv").write_bytes(CSV_CONTENT)

            result = self.runner.invoke(cli, ["inspect", "quiz.csv"])
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn('"type": "MA"', result.output)

            self.runner.invoke(cli, ["convert", "quiz.csv", "-t", "Inspect Me"])
            result = self.runner.invoke(cli, ["inspect", "inspect_me_qti.zip"])
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn('"title": "Inspect Me"', result.output)

    def test_convert_with_no_questions_fails(self):
        with self.runner.isolated_filesystem():
            Path("empty.csv").write_bytes(b"Question,Answer\n")
            result = self.runner.invoke(cli, ["convert", "empty.csv"])
            self.assertEqual(result.exit_code, 1)
            self.assertIn("No questions selected", result.output)

    def test_missing_input(self):
        result = self.runner.invoke(cli, ["convert", "does-not-exist.csv"])
        self.assertEqual(result.exit_code, 2)


if __name__ == "__main__":
    unittest.main()

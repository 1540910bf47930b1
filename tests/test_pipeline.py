import unittest

import fitz  # type: ignore

from itembank.models import QuestionType, QuizMetadata
from itembank.pipeline import (
    convert_qti_to_pdf,
    convert_spreadsheet_to_qti,
    export_qti,
    load_qti,
    print_exam,
)
from itembank.render import RenderOptions

CSV_CONTENT = (
    "MC,2+2?,3,incorrect,4,correct\n"
    "The sky is blue,true\n"
    "Capital of France is ___.,Paris,paris\n"
    "alpha,beta\n"
).encode("utf-8")


class TestPipeline(unittest.TestCase):
    def test_spreadsheet_to_pdf(self):
        built, encoded = convert_spreadsheet_to_qti(
            CSV_CONTENT, QuizMetadata(title="Pipeline Quiz", description="All units"), filename="quiz.csv"
        )
        self.assertEqual(len(built.questions), 3)
        self.assertEqual(len(built.warnings), 1)
        self.assertEqual(encoded.item_count, 3)

        decoded, exam = convert_qti_to_pdf(encoded.archive)
        self.assertEqual(decoded.metadata.title, "Pipeline Quiz")
        self.assertEqual(exam.filename, "pipeline_quiz_exam.pdf")
        with fitz.open(stream=exam.document, filetype="pdf") as doc:
            text = doc[0].get_text()
        self.assertIn("All units", text)

    def test_explicit_title_wins_over_quiz_title(self):
        _, encoded = convert_spreadsheet_to_qti(CSV_CONTENT, QuizMetadata(title="Original"), filename="quiz.csv")
        _, key = convert_qti_to_pdf(encoded.archive, RenderOptions(title="Retake"), answer_key=True)
        self.assertEqual(key.filename, "retake_answer_key.pdf")

    def test_export_and_print(self):
        _, encoded = convert_spreadsheet_to_qti(CSV_CONTENT, filename="quiz.csv")
        decoded = load_qti(export_qti(decoded_questions(encoded.archive)).archive)
        self.assertEqual(
            [q.type for q in decoded.questions],
            [QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE, QuestionType.FILL_IN_BLANK],
        )
        result = print_exam(decoded.questions, RenderOptions(paper_size="legal"))
        self.assertEqual(result.page_count, 1)


def decoded_questions(archive):
    return load_qti(archive).questions


if __name__ == "__main__":
    unittest.main()

import re
import unittest

import fitz  # type: ignore
from pydantic import ValidationError

from itembank.errors import EmptySelectionError
from itembank.models import Option, Question, QuestionType
from itembank.render import RenderOptions, render, render_answer_key, render_exam_set
from itembank.render.layout import mm, paper_dimensions, text_width_mm, wrap_text
from itembank.render.renderer import option_label

NUMBER_LINE = re.compile(r"^(\d+)\. ", re.MULTILINE)


def mc_question(n, option_count=4):
    return Question(
        id=f"mc_{n}",
        type=QuestionType.MULTIPLE_CHOICE,
        text=f"Question {n}: which option is right?",
        options=[
            Option(text=f"Option {chr(65 + i)} for {n}", is_correct=i == 0) for i in range(option_count)
        ],
    )


def page_texts(result):
    with fitz.open(stream=result.document, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


class TestPagination(unittest.TestCase):
    def setUp(self):
        self.questions = [mc_question(n) for n in range(1, 61)]
        self.options = RenderOptions(title="Long Exam", paper_size="letter", margin_mm=25.4)
        self.result = render(self.questions, self.options)
        self.texts = page_texts(self.result)

    def test_many_questions_span_pages(self):
        self.assertGreater(self.result.page_count, 1)
        self.assertEqual(len(self.texts), self.result.page_count)

    def test_every_number_printed_exactly_once(self):
        numbers = [int(n) for text in self.texts for n in NUMBER_LINE.findall(text)]
        self.assertEqual(sorted(numbers), list(range(1, 61)))

    def test_question_pages_match_document(self):
        self.assertEqual(len(self.result.question_pages), 60)
        self.assertEqual(self.result.question_pages, sorted(self.result.question_pages))
        for n, page in enumerate(self.result.question_pages, start=1):
            numbers = [int(x) for x in NUMBER_LINE.findall(self.texts[page - 1])]
            self.assertIn(n, numbers)

    def test_blocks_are_never_split(self):
        for n, page in enumerate(self.result.question_pages, start=1):
            lines = self.texts[page - 1].splitlines()
            for letter in "ABCD":
                self.assertIn(f"{letter}. Option {letter} for {n}", lines)

    def test_page_numbers(self):
        for index, text in enumerate(self.texts, start=1):
            self.assertIn(f"Page {index}", text.splitlines())

    def test_page_numbers_can_be_disabled(self):
        options = self.options.model_copy(update={"page_numbering": False})
        texts = page_texts(render(self.questions, options))
        self.assertFalse(any("Page 1" in text.splitlines() for text in texts))

    def test_block_taller_than_a_page_breaks_between_fragments(self):
        result = render([mc_question(1, option_count=120)], RenderOptions(paper_size="a4"))
        self.assertGreater(result.page_count, 1)
        self.assertEqual(result.question_pages, [1])


class TestVariants(unittest.TestCase):
    def setUp(self):
        self.questions = [
            mc_question(1),
            Question(
                id="ma_0",
                type=QuestionType.MULTIPLE_ANSWER,
                text="Pick all primes",
                options=[Option(text="2", is_correct=True), Option(text="4"), Option(text="5", is_correct=True)],
            ),
            Question(id="tf_0", type=QuestionType.TRUE_FALSE, text="The sky is blue", is_true=True),
            Question(id="ess_0", type=QuestionType.ESSAY, text="Explain entropy."),
            Question(id="fib_0", type=QuestionType.FILL_IN_BLANK, text="Capital of France is ___.", correct_answers=["Paris", "paris"]),
            Question(id="fib_1", type=QuestionType.FILL_IN_BLANK, text="Name a prime."),
        ]
        self.options = RenderOptions(title="Science Quiz", description="Read every question.")

    def test_exam_has_no_answers(self):
        result = render(self.questions, self.options)
        text = "\n".join(page_texts(result))
        self.assertEqual(result.filename, "science_quiz_exam.pdf")
        self.assertNotIn("Answer:", text)
        self.assertIn("Science Quiz", text)
        self.assertIn("Read every question.", text)
        self.assertIn("Number of Questions: 6", text)

    def test_answer_key(self):
        result = render_answer_key(self.questions, self.options)
        lines = "\n".join(page_texts(result)).splitlines()
        self.assertEqual(result.filename, "science_quiz_answer_key.pdf")
        self.assertIn("Science Quiz - Answer Key", lines)
        self.assertIn("Answer: True", lines)
        self.assertIn("Answer: Paris", lines)
        self.assertIn("Answer: (No answer provided)", lines)
        self.assertEqual(len(result.warnings), 1)

    def test_exam_set(self):
        exam, key = render_exam_set(self.questions, self.options.model_copy(update={"include_answers": True}))
        self.assertEqual(exam.filename, "science_quiz_exam.pdf")
        self.assertEqual(key.filename, "science_quiz_answer_key.pdf")
        self.assertNotIn("Answer:", "\n".join(page_texts(exam)))

    def test_option_letters_and_student_block(self):
        text = "\n".join(page_texts(render(self.questions, self.options)))
        lines = text.splitlines()
        self.assertIn("A. Option A for 1", lines)
        self.assertIn("D. Option D for 1", lines)
        self.assertIn("C. 5", lines)
        for label in ("Name:", "Section:", "Student Number:"):
            self.assertIn(label, text)
        self.assertRegex(text, r"Date: \w+ \d{2}, \d{4}")

    def test_student_block_can_be_disabled(self):
        options = self.options.model_copy(update={"student_block": False})
        text = "\n".join(page_texts(render(self.questions, options)))
        self.assertNotIn("Name:", text)
        self.assertNotIn("Student Number:", text)
        self.assertRegex(text, r"Date: \w+ \d{2}, \d{4}")

    def test_institution_college_and_document_properties(self):
        options = self.options.model_copy(
            update={"institution": "Springfield University", "college": "College of Science"}
        )
        result = render_answer_key(self.questions, options)
        lines = page_texts(result)[0].splitlines()
        self.assertIn("Springfield University", lines)
        self.assertIn("College of Science", lines)
        with fitz.open(stream=result.document, filetype="pdf") as doc:
            self.assertEqual(doc.metadata["title"], "Science Quiz - Answer Key")
            self.assertEqual(doc.metadata["subject"], "Answer Key")
            self.assertEqual(doc.metadata["author"], "Springfield University")

    def test_long_title_stays_on_the_page(self):
        title = "Comprehensive Final Examination in Introductory Thermodynamics and Statistical Mechanics II"
        result = render(self.questions, RenderOptions(title=title, paper_size="letter"))
        width = mm(paper_dimensions("letter")[0])
        with fitz.open(stream=result.document, filetype="pdf") as doc:
            blocks = doc[0].get_text("blocks")
        self.assertTrue(all(block[2] <= width for block in blocks))
        self.assertEqual(" ".join(page_texts(result)[0].split()[: len(title.split())]), title)

    def test_include_images_is_logged(self):
        options = self.options.model_copy(update={"include_images": True})
        with self.assertLogs("itembank.render.renderer", level="INFO") as logs:
            render(self.questions, options)
        self.assertTrue(any("image" in line.lower() for line in logs.output))

    def test_empty_selection(self):
        with self.assertRaises(EmptySelectionError):
            render([], self.options)


class TestLayoutHelpers(unittest.TestCase):
    def test_paper_sizes(self):
        self.assertEqual(paper_dimensions("LETTER"), (215.9, 279.4))
        self.assertEqual(paper_dimensions("long-bond"), (215.9, 355.6))
        with self.assertRaises(ValueError):
            paper_dimensions("tabloid")

    def test_invalid_paper_size_option(self):
        with self.assertRaises(ValidationError):
            RenderOptions(paper_size="tabloid")
        self.assertEqual(RenderOptions(paper_size=" A4 ").paper_size, "a4")

    def test_wrap_text_respects_width(self):
        text = "The quick brown fox jumps over the lazy dog. " * 10
        lines = wrap_text(text, 80, 10)
        self.assertGreater(len(lines), 1)
        for line in lines:
            self.assertLessEqual(text_width_mm(line, 10), 80)
        self.assertEqual(" ".join(lines).split(), text.split())

    def test_wrap_text_splits_long_words(self):
        lines = wrap_text("x" * 400, 50, 10)
        self.assertGreater(len(lines), 1)
        self.assertEqual("".join(lines), "x" * 400)

    def test_wrap_keeps_explicit_newlines(self):
        self.assertEqual(wrap_text("one\ntwo", 100, 10), ["one", "two"])

    def test_option_labels(self):
        self.assertEqual([option_label(i) for i in (0, 1, 25, 26, 27, 51, 52)], ["A", "B", "Z", "AA", "AB", "AZ", "BA"])


if __name__ == "__main__":
    unittest.main()

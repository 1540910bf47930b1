import io
import unittest
import zipfile

from fastapi.testclient import TestClient

from api.main import app
from itembank.builder import build
from itembank.models import QuestionType, QuizMetadata
from itembank.qti.encoder import encode

CSV_CONTENT = (
    "MC,2+2?,3,incorrect,4,correct\n"
    "The sky is blue,true\n"
    "Capital of France is ___.,Paris,paris\n"
).encode("utf-8")


def sample_archive():
    questions = [
        build(QuestionType.MULTIPLE_CHOICE, ["MC", "2+2?", "3", "incorrect", "4", "correct"]),
        build(QuestionType.TRUE_FALSE, ["The sky is blue", "true"]),
    ]
    return encode(questions, QuizMetadata(title="Api Quiz")).archive


class TestApi(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_convert_returns_zip(self):
        response = self.client.post(
            "/api/convert",
            files={"sheet": ("quiz.csv", CSV_CONTENT, "text/csv")},
            data={"title": "Unit Quiz"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "application/zip")
        self.assertIn("unit_quiz_qti.zip", response.headers["content-disposition"])
        self.assertEqual(response.headers["x-item-count"], "3")
        with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
            self.assertIn("imsmanifest.xml", zf.namelist())

    def test_convert_with_no_questions(self):
        response = self.client.post(
            "/api/convert",
            files={"sheet": ("quiz.csv", b"Question,Answer\n", "text/csv")},
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn("message", response.json()["detail"])

    def test_convert_rejects_unknown_format(self):
        response = self.client.post(
            "/api/convert",
            files={"sheet": ("quiz.txt", b"hello", "text/plain")},
        )
        self.assertEqual(response.status_code, 400)

    def test_decode(self):
        response = self.client.post(
            "/api/decode",
            files={"archive": ("quiz.zip", sample_archive(), "application/zip")},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["metadata"]["title"], "Api Quiz")
        self.assertEqual(body["question_count"], 2)
        self.assertEqual([q["type"] for q in body["questions"]], ["MC", "TF"])
        self.assertEqual(body["questions"][0]["options"][1], {"text": "4", "is_correct": True})

    def test_decode_rejects_garbage(self):
        response = self.client.post(
            "/api/decode",
            files={"archive": ("quiz.zip", b"not a zip", "application/zip")},
        )
        self.assertEqual(response.status_code, 400)

    def test_render_exam_and_key(self):
        response = self.client.post(
            "/api/render",
            files={"archive": ("quiz.zip", sample_archive(), "application/zip")},
            data={"paper_size": "letter"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "application/pdf")
        self.assertTrue(response.content.startswith(b"%PDF"))
        self.assertIn("api_quiz_exam.pdf", response.headers["content-disposition"])

        response = self.client.post(
            "/api/render",
            files={"archive": ("quiz.zip", sample_archive(), "application/zip")},
            data={"answer_key": "true"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("api_quiz_answer_key.pdf", response.headers["content-disposition"])

    def test_render_rejects_unknown_paper_size(self):
        response = self.client.post(
            "/api/render",
            files={"archive": ("quiz.zip", sample_archive(), "application/zip")},
            data={"paper_size": "tabloid"},
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()

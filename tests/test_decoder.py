import asyncio
import io
import unittest
import zipfile

from itembank.builder import build
from itembank.errors import ArchiveIoError, MalformedXmlError, MissingItemsDocumentError
from itembank.models import Option, Question, QuestionType, QuizMetadata, WarningCode
from itembank.qti.archive import read_archive
from itembank.qti.decoder import decode, decode_async, locate_documents
from itembank.qti.encoder import encode


def make_zip(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def sample_questions():
    return [
        build(QuestionType.MULTIPLE_CHOICE, ["MC", "2+2?", "3", "incorrect", "4", "correct"]),
        build(QuestionType.MULTIPLE_ANSWER, ["Primes?", "2", "correct", "3", "correct", "4", "incorrect"]),
        build(QuestionType.TRUE_FALSE, ["The sky is blue", "true"]),
        build(QuestionType.TRUE_FALSE, ["Fish can fly", "false"], index=1),
        build(QuestionType.ESSAY, ["Describe photosynthesis in your own words."]),
        build(QuestionType.FILL_IN_BLANK, ["Capital of France is ___.", "Paris", "paris"]),
        Question(
            id="mc_1",
            type=QuestionType.MULTIPLE_CHOICE,
            text='Tom & Jerry: which is <bigger>?\nPick "one"',
            options=[Option(text="Tom's", is_correct=False), Option(text="Jerry & co", is_correct=True)],
        ),
    ]


EXTERNAL_ITEMS = """<?xml version="1.0" encoding="UTF-8"?>
<questestinterop xmlns="http://www.imsglobal.org/xsd/ims_qtiasiv1p2">
  <assessment ident="ext_quiz" title="External Quiz">
    <section ident="root_section">
      <item ident="i1" title="Q1">
        <itemmetadata><qtimetadata>
          <qtimetadatafield><fieldlabel>question_type</fieldlabel><fieldentry>multiple_answers_question</fieldentry></qtimetadatafield>
        </qtimetadata></itemmetadata>
        <presentation>
          <material><mattext texttype="text/html">&lt;p&gt;Select &lt;b&gt;all&lt;/b&gt; primes&lt;/p&gt;</mattext></material>
          <response_lid ident="response1" rcardinality="Multiple"><render_choice>
            <response_label ident="a1"><material><mattext texttype="text/plain">2</mattext></material></response_label>
            <response_label ident="a2"><material><mattext texttype="text/plain">4</mattext></material></response_label>
            <response_label ident="a3"><material><mattext texttype="text/plain">5</mattext></material></response_label>
          </render_choice></response_lid>
        </presentation>
        <resprocessing>
          <outcomes><decvar maxvalue="100" minvalue="0" varname="SCORE" vartype="Decimal"/></outcomes>
          <respcondition continue="No">
            <conditionvar><and>
              <varequal respident="response1">a1</varequal>
              <not><varequal respident="response1">a2</varequal></not>
              <varequal respident="response1">a3</varequal>
            </and></conditionvar>
            <setvar action="Set" varname="SCORE">100</setvar>
          </respcondition>
        </resprocessing>
      </item>
      <item ident="i2" title="Q2">
        <itemmetadata><qtimetadata>
          <qtimetadatafield><fieldlabel>question_type</fieldlabel><fieldentry>matching_question</fieldentry></qtimetadatafield>
        </qtimetadata></itemmetadata>
        <presentation><material><mattext texttype="text/plain">Match them</mattext></material></presentation>
      </item>
      <item ident="i3" title="Q3">
        <itemmetadata><qtimetadata>
          <qtimetadatafield><fieldlabel>question_type</fieldlabel><fieldentry>multiple_choice_question</fieldentry></qtimetadatafield>
        </qtimetadata></itemmetadata>
        <presentation>
          <material><mattext texttype="text/plain">Continue?</mattext></material>
          <response_lid ident="response1" rcardinality="Single"><render_choice>
            <response_label ident="b1"><material><mattext texttype="text/plain">Yes</mattext></material></response_label>
            <response_label ident="b2"><material><mattext texttype="text/plain">No</mattext></material></response_label>
          </render_choice></response_lid>
        </presentation>
      </item>
    </section>
  </assessment>
</questestinterop>
"""


class TestRoundTrip(unittest.TestCase):
    def test_decode_inverts_encode(self):
        questions = sample_questions()
        decoded = decode(encode(questions, QuizMetadata(title="Round Trip")).archive)

        self.assertEqual(
            [q.content_fields() for q in decoded.questions],
            [q.content_fields() for q in questions],
        )
        self.assertEqual(decoded.warnings, [])

    def test_windows_line_endings_survive(self):
        q = build(QuestionType.ESSAY, ["Line one of the prompt\r\nline two?"])
        self.assertEqual(q.text, "Line one of the prompt\nline two?")
        decoded = decode(encode([q]).archive)
        self.assertEqual(decoded.questions[0].content_fields(), q.content_fields())

    def test_control_characters_do_not_break_the_package(self):
        clean = build(QuestionType.ESSAY, ["Describe photosynthesis in your own words."])
        pasted = build(QuestionType.ESSAY, ["Pasted from Word\x0bwith a vertical tab?"], index=1)
        raw = Question(
            id="mc_raw",
            type=QuestionType.MULTIPLE_CHOICE,
            text="Bell\x07 character?",
            options=[Option(text="yes\x1f", is_correct=True), Option(text="no", is_correct=False)],
        )
        encoded = encode([clean, pasted, raw])
        self.assertEqual(encoded.warnings, [])

        decoded = decode(encoded.archive)
        self.assertEqual(
            [q.text for q in decoded.questions],
            ["Describe photosynthesis in your own words.", "Pasted from Wordwith a vertical tab?", "Bell character?"],
        )
        self.assertEqual([o.text for o in decoded.questions[2].options], ["yes", "no"])

    def test_fill_in_blank_answers_recovered(self):
        q = build(QuestionType.FILL_IN_BLANK, ["Capital of France is ___.", "Paris", "paris"])
        decoded = decode(encode([q]).archive)
        self.assertEqual(decoded.questions[0].correct_answers, ["Paris", "paris"])

    def test_placeholder_answer_survives(self):
        q = build(QuestionType.FILL_IN_BLANK, ["The ___ is red."])
        decoded = decode(encode([q]).archive).questions[0]
        self.assertEqual(decoded.correct_answers, q.correct_answers)
        self.assertTrue(decoded.answers_unresolved)

    def test_metadata_round_trip(self):
        metadata = QuizMetadata(title="Biology Midterm", description="Chapters 1-3 & review")
        decoded = decode(encode(sample_questions(), metadata).archive)
        self.assertEqual(decoded.metadata, metadata)

    def test_ids_are_regenerated_but_unique(self):
        decoded = decode(encode(sample_questions()).archive)
        ids = [q.id for q in decoded.questions]
        self.assertEqual(len(set(ids)), len(ids))

    def test_decode_async(self):
        archive = encode(sample_questions()).archive
        decoded = asyncio.run(decode_async(archive))
        self.assertEqual(len(decoded.questions), len(sample_questions()))


class TestExternalPackages(unittest.TestCase):
    def test_sniffed_items_document_without_manifest(self):
        decoded = decode(make_zip({"ext/assessment.xml": EXTERNAL_ITEMS}))

        self.assertEqual(decoded.metadata.title, "External Quiz")
        self.assertEqual(len(decoded.questions), 2)

        ma, mc = decoded.questions
        self.assertEqual(ma.type, QuestionType.MULTIPLE_ANSWER)
        self.assertEqual(ma.text, "Select all primes")
        self.assertEqual([(o.text, o.is_correct) for o in ma.options], [("2", True), ("4", False), ("5", True)])

        self.assertEqual(mc.type, QuestionType.MULTIPLE_CHOICE)
        self.assertEqual([(o.text, o.is_correct) for o in mc.options], [("Yes", True), ("No", False)])

        codes = [w.code for w in decoded.warnings]
        self.assertEqual(codes, [WarningCode.UNSUPPORTED_QUESTION_TYPE, WarningCode.AMBIGUOUS_CORRECTNESS])
        self.assertEqual(decoded.warnings[0].question_id, "i2")

    def test_meta_document_overrides_title(self):
        meta = (
            '<quiz xmlns="http://canvas.instructure.com/xsd/cccv1p0" identifier="ext_quiz">'
            "<title>Renamed Quiz</title><description>&lt;p&gt;Read carefully&lt;/p&gt;</description></quiz>"
        )
        decoded = decode(make_zip({"ext/questions.xml": EXTERNAL_ITEMS, "ext/assessment_meta.xml": meta}))
        self.assertEqual(decoded.metadata.title, "Renamed Quiz")
        self.assertEqual(decoded.metadata.description, "Read carefully")

    def test_locate_prefers_manifest(self):
        archive = encode(sample_questions())
        files = read_archive(archive.archive)
        files["aaa/questions.xml"] = b"<questestinterop/>"
        items_path, meta_path = locate_documents(files)
        self.assertEqual(items_path, f"{archive.quiz_identifier}/questions.xml")
        self.assertEqual(meta_path, f"{archive.quiz_identifier}/assessment_meta.xml")


class TestFailures(unittest.TestCase):
    def test_not_a_zip(self):
        with self.assertRaises(ArchiveIoError):
            decode(b"definitely not a zip archive")

    def test_missing_items_document(self):
        with self.assertRaises(MissingItemsDocumentError):
            decode(make_zip({"readme.txt": "nothing here"}))

    def test_malformed_items_document(self):
        with self.assertRaises(MalformedXmlError):
            decode(make_zip({"quiz/questions.xml": "<questestinterop><item"}))


if __name__ == "__main__":
    unittest.main()

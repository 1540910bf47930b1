"""Package-level QTI documents: manifest, quiz metadata, items wrapper.

The layout follows what Canvas exports and imports for classic quizzes:

    imsmanifest.xml
    <quiz_id>/assessment_meta.xml
    <quiz_id>/questions.xml
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Sequence
from datetime import date

from itembank.models import QuizMetadata
from itembank.qti.text import html_paragraph
from itembank.utils.text_cleanup import strip_invalid_xml_chars

MANIFEST_FILENAME = "imsmanifest.xml"
META_FILENAME = "assessment_meta.xml"
ITEMS_FILENAME = "questions.xml"

QTI_RESOURCE_TYPE = "imsqti_xmlv1p2"
META_RESOURCE_TYPE = "associatedcontent/imscc_xmlv1p1/learning-application-resource"

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
QTI_NS = "http://www.imsglobal.org/xsd/ims_qtiasiv1p2"
MANIFEST_NS = "http://www.imsglobal.org/xsd/imsccv1p1/imscp_v1p1"
IMSMD_NS = "http://www.imsglobal.org/xsd/imsmd_v1p2"
CANVAS_NS = "http://canvas.instructure.com/xsd/cccv1p0"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# Quiz settings written verbatim into assessment_meta.xml
QUIZ_SETTINGS: list[tuple[str, str]] = [
    ("shuffle_answers", "false"),
    ("scoring_policy", "keep_highest"),
    ("hide_results", ""),
    ("quiz_type", "assignment"),
]
QUIZ_FLAGS: list[tuple[str, str]] = [
    ("require_lockdown_browser", "false"),
    ("require_lockdown_browser_for_results", "false"),
    ("require_lockdown_browser_monitor", "false"),
    ("show_correct_answers", "true"),
    ("anonymous_submissions", "false"),
    ("could_be_locked", "false"),
    ("allowed_attempts", "1"),
    ("one_question_at_a_time", "false"),
    ("cant_go_back", "false"),
    ("available", "false"),
    ("one_time_results", "false"),
    ("show_correct_answers_last_attempt", "false"),
    ("only_visible_to_overrides", "false"),
    ("module_locked", "false"),
]
ASSIGNMENT_FLAGS: list[tuple[str, str]] = [
    ("grading_type", "points"),
    ("all_day", "false"),
    ("submission_types", "online_quiz"),
    ("position", "1"),
    ("peer_review_count", "0"),
    ("peer_reviews", "false"),
    ("omit_from_final_grade", "false"),
    ("post_to_sis", "false"),
    ("moderated_grading", "false"),
    ("anonymous_grading", "false"),
]


def serialize(root: ET.Element) -> str:
    """Pretty-print an element tree as a UTF-8 declared XML document."""
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


def _text_child(parent: ET.Element, tag: str, text: str | None = None) -> ET.Element:
    child = ET.SubElement(parent, tag)
    if text is not None:
        child.text = strip_invalid_xml_chars(text)
    return child


def _metadata_field(parent: ET.Element, label: str, entry: str) -> None:
    field = ET.SubElement(parent, "qtimetadatafield")
    _text_child(field, "fieldlabel", label)
    _text_child(field, "fieldentry", entry)


def _short_id(quiz_id: str) -> str:
    return quiz_id.rsplit("_", 1)[-1]


def build_manifest(quiz_id: str, metadata: QuizMetadata, export_date: date | None = None) -> str:
    """IMS content package manifest pointing at the two quiz documents."""
    export_date = export_date or date.today()
    root = ET.Element(
        "manifest",
        {
            "identifier": f"{quiz_id}_manifest",
            "xmlns": MANIFEST_NS,
            "xmlns:imsmd": IMSMD_NS,
            "xmlns:xsi": XSI_NS,
        },
    )
    meta = ET.SubElement(root, "metadata")
    _text_child(meta, "schema", "IMS Content")
    _text_child(meta, "schemaversion", "1.1.3")
    lom = ET.SubElement(meta, "imsmd:lom")
    general = ET.SubElement(lom, "imsmd:general")
    title = ET.SubElement(general, "imsmd:title")
    _text_child(title, "imsmd:string", metadata.title)
    lifecycle = ET.SubElement(lom, "imsmd:lifeCycle")
    contribute = ET.SubElement(lifecycle, "imsmd:contribute")
    date_el = ET.SubElement(contribute, "imsmd:date")
    _text_child(date_el, "imsmd:dateTime", export_date.isoformat())

    ET.SubElement(root, "organizations")
    resources = ET.SubElement(root, "resources")

    dependency_id = f"{quiz_id}_dependency"
    items = ET.SubElement(resources, "resource", {"identifier": quiz_id, "type": QTI_RESOURCE_TYPE})
    ET.SubElement(items, "file", {"href": f"{quiz_id}/{ITEMS_FILENAME}"})
    ET.SubElement(items, "dependency", {"identifierref": dependency_id})

    meta_href = f"{quiz_id}/{META_FILENAME}"
    meta_res = ET.SubElement(
        resources,
        "resource",
        {"identifier": dependency_id, "type": META_RESOURCE_TYPE, "href": meta_href},
    )
    ET.SubElement(meta_res, "file", {"href": meta_href})
    return serialize(root)


def build_assessment_meta(quiz_id: str, metadata: QuizMetadata, points_possible: float) -> str:
    """Canvas quiz settings document (title, description, scoring policy)."""
    points = f"{points_possible:.1f}"
    root = ET.Element(
        "quiz",
        {"identifier": quiz_id, "xmlns": CANVAS_NS, "xmlns:xsi": XSI_NS},
    )
    _text_child(root, "title", metadata.title)
    _text_child(root, "description", html_paragraph(metadata.description) if metadata.description else "")
    for tag, value in QUIZ_SETTINGS:
        _text_child(root, tag, value)
    _text_child(root, "points_possible", points)
    for tag, value in QUIZ_FLAGS:
        _text_child(root, tag, value)

    assignment = ET.SubElement(root, "assignment", {"identifier": f"itembank_assignment_{_short_id(quiz_id)}"})
    _text_child(assignment, "title", metadata.title)
    _text_child(assignment, "workflow_state", "unpublished")
    _text_child(assignment, "quiz_identifierref", quiz_id)
    _text_child(assignment, "points_possible", points)
    for tag, value in ASSIGNMENT_FLAGS:
        _text_child(assignment, tag, value)

    _text_child(root, "assignment_group_identifierref", f"itembank_assignment-group_{_short_id(quiz_id)}")
    return serialize(root)


def build_items_document(quiz_id: str, metadata: QuizMetadata, items: Sequence[ET.Element]) -> str:
    """``questestinterop`` document holding every item in one section."""
    root = ET.Element("questestinterop", {"xmlns": QTI_NS, "xmlns:xsi": XSI_NS})
    title = strip_invalid_xml_chars(metadata.title)
    assessment = ET.SubElement(root, "assessment", {"ident": quiz_id, "title": title})
    qtimetadata = ET.SubElement(assessment, "qtimetadata")
    _metadata_field(qtimetadata, "cc_maxattempts", "1")
    section = ET.SubElement(assessment, "section", {"ident": "root_section"})
    for item in items:
        section.append(item)
    return serialize(root)

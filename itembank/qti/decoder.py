"""QTI Decoder - reads a QTI 1.2 package back into canonical questions.

Packages may come from other tools, so every lookup is tolerant:

1. Find the items document (manifest resource first, then file names)
2. Read quiz metadata (assessment title, overridden by the meta document)
3. Decode each ``<item>`` by its ``question_type`` metadata field,
   reconstructing correctness from the parsed condition trees

Parsing is namespace-agnostic: every lookup uses the ``{*}`` wildcard.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import xml.etree.ElementTree as ET
from collections.abc import Mapping

from itembank.builder import UNRESOLVED_ANSWER_PLACEHOLDER, question_id
from itembank.errors import (
    MalformedXmlError,
    MissingItemsDocumentError,
    UnsupportedQuestionTypeError,
)
from itembank.models import (
    BatchWarning,
    DecodeResult,
    Option,
    Question,
    QuestionType,
    QuizMetadata,
    WarningCode,
)
from itembank.qti.archive import read_archive
from itembank.qti.conditions import (
    Equality,
    ResponseCondition,
    direct_equalities,
    find_conjunction,
    iter_equalities,
    local_name,
    negated_equalities,
    parse_respcondition,
)
from itembank.qti.documents import MANIFEST_FILENAME, QTI_RESOURCE_TYPE
from itembank.qti.text import clean_html

logger = logging.getLogger(__name__)

# question_type metadata values accepted on import
QTI_TYPE_MAP: dict[str, QuestionType] = {
    "multiple_choice_question": QuestionType.MULTIPLE_CHOICE,
    "multiple_answers_question": QuestionType.MULTIPLE_ANSWER,
    "true_false_question": QuestionType.TRUE_FALSE,
    "essay_question": QuestionType.ESSAY,
    "short_answer_question": QuestionType.FILL_IN_BLANK,
    "fill_in_multiple_blanks_question": QuestionType.FILL_IN_BLANK,
}


def decode(archive: bytes) -> DecodeResult:
    """Decode a zipped QTI package.

    Args:
        archive: Zip archive bytes.

    Returns:
        DecodeResult with the questions in document order, the quiz metadata
        and a warning for every item that was skipped or adjusted.

    Raises:
        ArchiveIoError: If `archive` is not a readable zip.
        MissingItemsDocumentError: If no items document can be found.
        MalformedXmlError: If the items document is not well-formed XML.
    """
    files = read_archive(archive)
    logger.debug(f"Archive entries: {sorted(files)}")

    items_path, meta_path = locate_documents(files)
    if items_path is None:
        raise MissingItemsDocumentError("No QTI questions document found in archive")
    logger.info(f"Reading items from {items_path}")

    root = _parse_xml(files[items_path], items_path)
    metadata = _read_metadata(root, files.get(meta_path) if meta_path else None, meta_path)

    result = DecodeResult(metadata=metadata)
    items = root.findall(".//{*}item")
    for position, item in enumerate(items):
        ident = item.get("ident", f"item_{position}")
        try:
            question = decode_item(item, position, result.warnings)
        except UnsupportedQuestionTypeError as e:
            logger.warning(f"Skipping item {ident}: {e}")
            result.warnings.append(
                BatchWarning(
                    code=WarningCode.UNSUPPORTED_QUESTION_TYPE,
                    message=str(e),
                    question_id=ident,
                )
            )
            continue
        except Exception as e:
            logger.error(f"Error processing item {ident}: {e}")
            result.warnings.append(
                BatchWarning(
                    code=WarningCode.ITEM_GENERATION_FAILED,
                    message=str(e),
                    question_id=ident,
                )
            )
            continue
        result.questions.append(question)

    logger.info(
        f"Decoded {len(result.questions)} of {len(items)} items from \"{metadata.title}\" "
        f"({len(result.warnings)} warnings)"
    )
    return result


async def decode_async(archive: bytes) -> DecodeResult:
    """Awaitable :func:`decode`; decompression runs in a worker thread."""
    return await asyncio.to_thread(decode, archive)


# -----------------------------------------------------------------------------
# Document lookup
# -----------------------------------------------------------------------------


def locate_documents(files: Mapping[str, bytes]) -> tuple[str | None, str | None]:
    """Return (items document path, quiz metadata path) within the archive."""
    items_path, meta_path = _from_manifest(files)
    if items_path is None:
        items_path = _sniff_items_document(files)
    if meta_path is None:
        meta_path = _sniff_meta_document(files, items_path)
    return items_path, meta_path


def _from_manifest(files: Mapping[str, bytes]) -> tuple[str | None, str | None]:
    manifest_path = next(
        (name for name in files if posixpath.basename(name).lower() == MANIFEST_FILENAME),
        None,
    )
    if manifest_path is None:
        return None, None

    try:
        manifest = ET.fromstring(files[manifest_path])
    except ET.ParseError as e:
        logger.warning(f"Ignoring unreadable manifest {manifest_path}: {e}")
        return None, None

    base = posixpath.dirname(manifest_path)
    resources = {res.get("identifier", ""): res for res in manifest.findall(".//{*}resource")}

    items_path = None
    meta_path = None
    for resource in resources.values():
        if resource.get("type") != QTI_RESOURCE_TYPE:
            continue
        href = _resource_href(resource, base, files)
        if href is None:
            continue
        items_path = href
        for dependency in resource.findall("{*}dependency"):
            target = resources.get(dependency.get("identifierref", ""))
            if target is not None:
                meta_path = _resource_href(target, base, files)
                if meta_path:
                    break
        break

    return items_path, meta_path


def _resource_href(resource: ET.Element, base: str, files: Mapping[str, bytes]) -> str | None:
    hrefs = [f.get("href") for f in resource.findall("{*}file")]
    hrefs.append(resource.get("href"))
    for href in hrefs:
        if not href:
            continue
        path = posixpath.normpath(posixpath.join(base, href)) if base else href
        if path in files:
            return path
    return None


def _is_meta_name(name: str) -> bool:
    return "meta" in posixpath.basename(name).lower()


def _xml_entries(files: Mapping[str, bytes]) -> list[str]:
    return sorted(
        name
        for name in files
        if name.lower().endswith(".xml") and posixpath.basename(name).lower() != MANIFEST_FILENAME
    )


def _sniff_items_document(files: Mapping[str, bytes]) -> str | None:
    entries = [name for name in _xml_entries(files) if not _is_meta_name(name)]
    for keyword in ("questions", "assessment"):
        for name in entries:
            if keyword in posixpath.basename(name).lower():
                return name
    # Last resort: look inside the documents themselves.
    for name in entries:
        if b"questestinterop" in files[name][:2048]:
            return name
    return None


def _sniff_meta_document(files: Mapping[str, bytes], items_path: str | None) -> str | None:
    candidates = [name for name in _xml_entries(files) if _is_meta_name(name)]
    if items_path:
        folder = posixpath.dirname(items_path)
        same_folder = [name for name in candidates if posixpath.dirname(name) == folder]
        candidates = same_folder or candidates
    return candidates[0] if candidates else None


def _parse_xml(data: bytes, path: str) -> ET.Element:
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise MalformedXmlError(f"Could not parse {path}: {e}") from e


# -----------------------------------------------------------------------------
# Metadata
# -----------------------------------------------------------------------------


def _read_metadata(root: ET.Element, meta_data: bytes | None, meta_path: str | None) -> QuizMetadata:
    assessment = root if local_name(root.tag) == "assessment" else root.find(".//{*}assessment")
    title = assessment.get("title", "") if assessment is not None else ""
    description = ""

    if meta_data is not None:
        try:
            meta = ET.fromstring(meta_data)
        except ET.ParseError as e:
            logger.warning(f"Ignoring unreadable quiz metadata {meta_path}: {e}")
        else:
            title_el = meta.find("{*}title")
            if title_el is not None and (title_el.text or "").strip():
                title = title_el.text.strip()
            description_el = meta.find("{*}description")
            if description_el is not None:
                description = clean_html(description_el.text)

    return QuizMetadata(title=title.strip() or "Quiz", description=description)


# -----------------------------------------------------------------------------
# Items
# -----------------------------------------------------------------------------


def item_type(item: ET.Element) -> str | None:
    """Value of the ``question_type`` metadata field, if present."""
    for field in item.findall(".//{*}qtimetadatafield"):
        label = field.find("{*}fieldlabel")
        if label is not None and (label.text or "").strip() == "question_type":
            entry = field.find("{*}fieldentry")
            return (entry.text or "").strip() if entry is not None else None
    return None


def decode_item(item: ET.Element, position: int, warnings: list[BatchWarning]) -> Question:
    """Decode one ``<item>`` element.

    Raises:
        UnsupportedQuestionTypeError: If the type metadata is missing or unknown.
    """
    type_name = item_type(item)
    qtype = QTI_TYPE_MAP.get(type_name or "")
    if qtype is None:
        raise UnsupportedQuestionTypeError(f"Unsupported question type: {type_name or '(none)'}")

    qid = question_id(qtype, position)
    text = _prompt_text(item)
    labels = _response_labels(item)
    conditions = _scoring_conditions(item)

    if qtype == QuestionType.MULTIPLE_CHOICE:
        options = _decode_single_choice(qid, labels, conditions, warnings)
        return Question(id=qid, type=qtype, text=text, options=options)
    if qtype == QuestionType.MULTIPLE_ANSWER:
        options = _decode_multiple_answer(qid, labels, conditions, warnings)
        return Question(id=qid, type=qtype, text=text, options=options)
    if qtype == QuestionType.TRUE_FALSE:
        return Question(id=qid, type=qtype, text=text, is_true=_decode_true_false(qid, labels, conditions, warnings))
    if qtype == QuestionType.ESSAY:
        return Question(id=qid, type=qtype, text=text)
    if qtype == QuestionType.FILL_IN_BLANK:
        answers = _decode_answers(qid, conditions, warnings)
        return Question(
            id=qid,
            type=qtype,
            text=text,
            correct_answers=answers,
            answers_unresolved=answers == [UNRESOLVED_ANSWER_PLACEHOLDER],
        )
    raise UnsupportedQuestionTypeError(f"Unsupported question type: {type_name}")


def _mattext(container: ET.Element) -> str:
    parts = []
    for material in container.findall("{*}material"):
        for mattext in material.findall("{*}mattext"):
            raw = mattext.text or ""
            if (mattext.get("texttype") or "text/plain").lower() == "text/html":
                parts.append(clean_html(raw))
            else:
                parts.append(raw.strip())
    return "\n".join(part for part in parts if part)


def _prompt_text(item: ET.Element) -> str:
    presentation = item.find("{*}presentation")
    return _mattext(presentation) if presentation is not None else ""


def _response_labels(item: ET.Element) -> list[tuple[str, str]]:
    """(ident, text) of every choice label, in document order."""
    presentation = item.find("{*}presentation")
    if presentation is None:
        return []
    labels = []
    for response in presentation.findall(".//{*}response_lid"):
        for label in response.findall(".//{*}response_label"):
            labels.append((label.get("ident", ""), _mattext(label)))
    return labels


def _scoring_conditions(item: ET.Element) -> list[ResponseCondition]:
    """Conditions that award points; unparseable ones are skipped."""
    conditions = []
    for element in item.findall("{*}resprocessing/{*}respcondition"):
        try:
            rc = parse_respcondition(element)
        except ValueError as e:
            logger.debug(f"Skipping respcondition: {e}")
            continue
        if rc.awards_points:
            conditions.append(rc)
    return conditions


def _ambiguous(warnings: list[BatchWarning], qid: str, message: str) -> None:
    logger.warning(f"{qid}: {message}")
    warnings.append(BatchWarning(code=WarningCode.AMBIGUOUS_CORRECTNESS, message=message, question_id=qid))


def _decode_single_choice(
    qid: str,
    labels: list[tuple[str, str]],
    conditions: list[ResponseCondition],
    warnings: list[BatchWarning],
) -> list[Option]:
    idents = [ident for ident, _ in labels]
    correct = next(
        (eq.value for rc in conditions for eq in iter_equalities(rc.condition) if eq.value in idents),
        None,
    )
    if correct is None and labels:
        _ambiguous(warnings, qid, "No scoring condition names an option; first option assumed correct")
        correct = idents[0]
    return [Option(text=text, is_correct=ident == correct) for ident, text in labels]


def _decode_multiple_answer(
    qid: str,
    labels: list[tuple[str, str]],
    conditions: list[ResponseCondition],
    warnings: list[BatchWarning],
) -> list[Option]:
    correct: set[str] = set()
    incorrect: set[str] = set()

    for rc in conditions:
        conjunction = find_conjunction(rc.condition)
        if conjunction is not None:
            correct.update(eq.value for eq in direct_equalities(conjunction))
            incorrect.update(eq.value for eq in negated_equalities(conjunction))
        elif isinstance(rc.condition, Equality):
            correct.add(rc.condition.value)

    flags = [ident in correct and ident not in incorrect for ident, _ in labels]
    if labels and not any(flags):
        _ambiguous(warnings, qid, "No options marked correct; first option assumed correct")
        flags[0] = True
    return [Option(text=text, is_correct=flag) for (_, text), flag in zip(labels, flags)]


def _decode_true_false(
    qid: str,
    labels: list[tuple[str, str]],
    conditions: list[ResponseCondition],
    warnings: list[BatchWarning],
) -> bool:
    texts = dict(labels)
    named = next(
        (eq.value for rc in conditions for eq in iter_equalities(rc.condition) if eq.value in texts),
        None,
    )
    if named is None:
        _ambiguous(warnings, qid, "True/false item has no scoring condition; answer taken as false")
        return False
    return texts[named].strip().lower() == "true"


def _decode_answers(
    qid: str,
    conditions: list[ResponseCondition],
    warnings: list[BatchWarning],
) -> list[str]:
    answers: list[str] = []
    for rc in conditions:
        for eq in iter_equalities(rc.condition):
            if eq.value and eq.value not in answers:
                answers.append(eq.value)
    if not answers:
        logger.warning(f"{qid}: fill in blank item has no accepted answers")
        warnings.append(
            BatchWarning(
                code=WarningCode.MISSING_ANSWERS,
                message="Fill in blank item has no accepted answers",
                question_id=qid,
            )
        )
    return answers

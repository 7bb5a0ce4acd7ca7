import os
import time
import random
import string
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from flask import current_app

from database import db
from models import Candidate, ProcessingStatus
from cv_parser import (
    MIN_RESUME_TEXT_LENGTH, UNKNOWN_CANDIDATE, FAILED_TO_PARSE,
    extract_text_from_pdf, extract_text_from_file, parse_resume_with_ai,
    is_generic_name, name_from_filename
)
from utils import (
    is_cv_file, save_uploaded_file, get_file_extension, is_placeholder_text,
    validate_extraction_quality, truncate_text
)

logger = logging.getLogger(__name__)

MAX_RESUME_SIZE = 5 * 1024 * 1024
PREVIEW_LENGTH = 500


class UploadValidationError(Exception):
    """The uploaded file was rejected before anything was stored"""


@dataclass
class UploadOutcome:
    upload_id: str
    candidate: Candidate
    file_name: str
    original_name: str
    file_size: int
    file_type: str
    text_preview: str
    full_text_length: int
    extraction_metadata: Dict[str, Any] = field(default_factory=dict)
    processing_time: int = 0

    def to_dict(self):
        candidate = self.candidate
        return {
            'uploadId': self.upload_id,
            'candidateId': candidate.id,
            'fileName': self.file_name,
            'originalName': self.original_name,
            'fileSize': self.file_size,
            'fileType': self.file_type,
            'extractedText': self.text_preview,
            'fullTextLength': self.full_text_length,
            'jobId': candidate.job_id,
            'organizationId': candidate.organization_id,
            'candidate': {
                'id': candidate.id,
                'name': candidate.name,
                'email': candidate.email,
                'aiData': candidate.ai_data,
                'processingStatus': candidate.processing_status.value,
                'createdAt': candidate.created_at.isoformat() if candidate.created_at else None
            },
            'extractionMetadata': self.extraction_metadata,
            'processingTime': self.processing_time
        }


def new_upload_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"upload_{int(time.time() * 1000)}_{suffix}"

def timestamp_name() -> str:
    return f"Candidate_{int(time.time() * 1000)}"

def unparsed_ai_data(summary: str, note: str) -> Dict[str, Any]:
    """ai_data stored when the resume was never parsed"""
    return {
        'name': timestamp_name(),
        'email': None,
        'skills': ['General'],
        'experience': [],
        'education': [],
        'summary': summary,
        'processingNote': note
    }

def _has_email(value) -> bool:
    return bool(value) and value != 'null'

def apply_parsed_resume(candidate: Candidate, resume_text: str) -> Dict[str, Any]:
    """Store new resume text on a candidate and refresh its parsed data"""
    candidate.resume_text = resume_text
    ai_data = parse_resume_with_ai(resume_text)

    if not is_generic_name(ai_data.get('name')):
        candidate.name = ai_data['name']
    if _has_email(ai_data.get('email')):
        candidate.email = ai_data['email']

    candidate.ai_data = ai_data
    return ai_data

def _extract_upload_text(data: bytes, file_name: str, content_type: str, upload_id: str):
    if content_type == 'application/pdf' or get_file_extension(file_name) == '.pdf':
        logger.info(f"[{upload_id}] Processing PDF file...")
        result = extract_text_from_pdf(data, file_name, min_text_length=MIN_RESUME_TEXT_LENGTH)
        if not result.success:
            logger.warning(f"[{upload_id}] PDF extraction not fully successful: {result.error}")

        return result.text, {
            'extractionSuccess': result.success,
            'extractionMethod': result.metadata.get('extractionMethod'),
            'processingTime': result.metadata.get('processingTime'),
            'numPages': result.metadata.get('numPages'),
            'extractionError': result.error
        }

    try:
        text = extract_text_from_file(data, file_name, content_type)
        return text, {'extractionSuccess': True, 'extractionMethod': 'direct'}
    except Exception as e:
        logger.error(f"[{upload_id}] Text extraction failed: {e}")
        text = (
            f"File: {file_name}\n"
            f"Size: {len(data)} bytes\n"
            f"Type: {content_type}\n"
            f"Note: Text extraction failed. Error: {e}"
        )
        return text, {'extractionSuccess': False, 'extractionError': str(e)}

def process_resume_upload(file, organization_id: int, job_id: int, upload_folder: str,
                          upload_id: Optional[str] = None) -> UploadOutcome:
    """Save an uploaded resume, extract and parse its text, and store the candidate.

    ``file`` is a werkzeug ``FileStorage``. Raises UploadValidationError when the
    file is too large or not a resume type; extraction and AI failures are
    absorbed into the stored candidate instead.
    """
    start_time = time.monotonic()
    upload_id = upload_id or new_upload_id()

    original_name = file.filename or 'unnamed_file'
    content_type = (file.mimetype or '').strip()
    data = file.read()
    file_size = len(data)

    logger.info(f"[{upload_id}] Upload received: {original_name} ({file_size} bytes, {content_type or 'unknown type'})")

    max_size = current_app.config.get('MAX_RESUME_SIZE', MAX_RESUME_SIZE)
    if file_size > max_size:
        raise UploadValidationError(
            f"File size must be less than {round(max_size / 1024 / 1024)}MB "
            f"(current: {round(file_size / 1024 / 1024, 2)}MB)"
        )

    if not is_cv_file(original_name, content_type):
        raise UploadValidationError(
            f"Only TXT, PDF, DOC, and DOCX files are allowed. Received: {content_type or 'unknown type'}"
        )

    file_name = save_uploaded_file(data, original_name, upload_folder)
    logger.info(f"[{upload_id}] File saved: {file_name}")

    text, extraction_metadata = _extract_upload_text(data, original_name, content_type, upload_id)
    logger.info(f"[{upload_id}] Text extraction completed: {len(text)} characters")

    ai_processing_success = False
    if text and len(text.strip()) > MIN_RESUME_TEXT_LENGTH:
        logger.info(f"[{upload_id}] Processing resume with AI...")
        try:
            ai_data = parse_resume_with_ai(text)
            ai_processing_success = True
        except Exception as e:
            logger.error(f"[{upload_id}] AI processing failed: {e}")
            ai_data = unparsed_ai_data('AI processing unavailable - see resume text for details',
                                       f"AI processing failed: {e}")
    else:
        logger.warning(f"[{upload_id}] Skipping AI processing - insufficient text content ({len(text)} chars)")
        ai_data = unparsed_ai_data('Insufficient text content for AI processing',
                                   'Skipped AI processing due to minimal text content')

    name = ai_data.get('name')
    if is_generic_name(name):
        name = timestamp_name()

    candidate = Candidate(
        organization_id=organization_id,
        job_id=job_id,
        name=name,
        email=ai_data.get('email') if _has_email(ai_data.get('email')) else None,
        resume_text=text,
        ai_data=ai_data,
        file_name=file_name,
        original_file_name=original_name,
        file_size=file_size,
        file_type=content_type,
        file_path=os.path.join(upload_folder, file_name),
        processing_status=ProcessingStatus.COMPLETED
    )
    db.session.add(candidate)
    db.session.commit()
    logger.info(f"[{upload_id}] Candidate record created: {candidate.id} ({candidate.name})")

    extraction_metadata['aiProcessingSuccess'] = ai_processing_success
    extraction_metadata['quality'] = validate_extraction_quality(text, original_name)

    processing_time = int((time.monotonic() - start_time) * 1000)
    logger.info(f"[{upload_id}] Upload process completed in {processing_time}ms")

    return UploadOutcome(
        upload_id=upload_id,
        candidate=candidate,
        file_name=file_name,
        original_name=original_name,
        file_size=file_size,
        file_type=content_type,
        text_preview=truncate_text(text, PREVIEW_LENGTH),
        full_text_length=len(text),
        extraction_metadata=extraction_metadata,
        processing_time=processing_time
    )

def reprocess_generic_candidates() -> Dict[str, int]:
    """Give candidates stuck with a generic name another chance at a real one"""
    candidates = Candidate.query.filter(db.or_(
        Candidate.name.in_([UNKNOWN_CANDIDATE, FAILED_TO_PARSE]),
        Candidate.name.like('Candidate\\_%', escape='\\')
    )).all()

    processed = 0
    updated = 0

    for candidate in candidates:
        if not is_generic_name(candidate.name):
            continue

        processed += 1
        if not candidate.resume_text or len(candidate.resume_text.strip()) <= MIN_RESUME_TEXT_LENGTH:
            continue

        try:
            if is_placeholder_text(candidate.resume_text):
                # Nothing readable was extracted; fall back to the file name
                file_name = candidate.original_file_name or candidate.file_name or 'Unknown'
                name = name_from_filename(file_name)
                candidate.name = name
                candidate.email = None
                candidate.ai_data = {
                    'name': name,
                    'email': None,
                    'phone': None,
                    'location': None,
                    'summary': f"Resume uploaded as {file_name}. Text extraction failed - manual review recommended.",
                    'skills': [],
                    'experience': [],
                    'education': [],
                    'linkedin': None,
                    'github': None,
                    'portfolio': None
                }
                db.session.commit()
                updated += 1
                logger.info(f"Cleaned candidate {candidate.id} with name: {name}")
            else:
                ai_data = parse_resume_with_ai(candidate.resume_text)
                if not is_generic_name(ai_data.get('name')):
                    candidate.name = ai_data['name']
                    candidate.ai_data = {**(candidate.ai_data or {}), **ai_data}
                    db.session.commit()
                    updated += 1
                    logger.info(f"Updated candidate {candidate.id} with name: {candidate.name}")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to reprocess candidate {candidate.id}: {e}")

    logger.info(f"Reprocessed {processed} candidates, updated {updated} names")
    return {'processed': processed, 'updated': updated}

def reextract_placeholder_candidates() -> Dict[str, int]:
    """Re-read stored PDFs whose text was never extracted and parse them again"""
    candidates = Candidate.query.filter(
        Candidate.file_path.isnot(None),
        Candidate.original_file_name.ilike('%.pdf')
    ).all()

    processed = 0
    updated = 0
    errors = 0

    for candidate in candidates:
        if not is_placeholder_text(candidate.resume_text):
            continue

        processed += 1
        try:
            logger.info(f"Re-extracting PDF for candidate {candidate.id}: {candidate.original_file_name}")
            with open(candidate.file_path, 'rb') as handle:
                data = handle.read()

            result = extract_text_from_pdf(data, candidate.original_file_name)
            if result.success and len(result.text.strip()) > MIN_RESUME_TEXT_LENGTH:
                apply_parsed_resume(candidate, result.text)
                db.session.commit()
                updated += 1
                logger.info(f"Updated candidate {candidate.id} with extracted data")
            else:
                logger.warning(f"PDF {candidate.original_file_name} still returned minimal text content")

        except Exception as e:
            db.session.rollback()
            errors += 1
            logger.error(f"Failed to re-extract PDF for candidate {candidate.id}: {e}")

    logger.info(f"Re-extracted {processed} PDFs, updated {updated} candidates")
    return {'processed': processed, 'updated': updated, 'errors': errors}

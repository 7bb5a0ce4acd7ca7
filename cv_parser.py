import logging
import re
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional

import PyPDF2
import docx

import ai_client
from utils import get_file_extension, validate_extraction_quality

logger = logging.getLogger(__name__)

UNKNOWN_CANDIDATE = "Unknown Candidate"
FAILED_TO_PARSE = "Failed to parse"

# Resumes shorter than this are not worth sending to the model
MIN_RESUME_TEXT_LENGTH = 50

FALLBACK_SKILLS = [
    'JavaScript', 'Python', 'Java', 'React', 'Node.js', 'HTML', 'CSS',
    'SQL', 'MongoDB', 'PostgreSQL', 'AWS', 'Docker', 'Git', 'TypeScript',
    'Angular', 'Vue', 'PHP', 'C++', 'C#', '.NET', 'Ruby', 'Go', 'Rust'
]

COMMON_SKILLS = [
    'JavaScript', 'Python', 'Java', 'React', 'Node.js', 'SQL', 'HTML', 'CSS', 'Git',
    'Docker', 'AWS', 'MongoDB', 'PostgreSQL', 'TypeScript', 'Angular', 'Vue', 'PHP',
    'C++', 'C#', '.NET', 'Spring', 'Django', 'Flask', 'Express', 'Redux', 'GraphQL',
    'REST', 'API', 'Microservices', 'Kubernetes', 'Jenkins', 'CI/CD', 'Agile', 'Scrum'
]

EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
LOOSE_PHONE_PATTERN = re.compile(r'\+?[\d(][\d \t\-()]{8,}\d')
US_PHONE_PATTERN = re.compile(r'(\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}')

NAME_PATTERNS = [
    re.compile(r'^([A-Z][a-z]+ [A-Z][a-z]+)', re.M),
    re.compile(r'Name:\s*([A-Z][a-z]+ [A-Z][a-z]+)', re.I),
    re.compile(r'([A-Z][a-z]+ [A-Z][a-z]+)\s*\n', re.M)
]
HEADER_NAME_PATTERN = re.compile(r'^[A-Z][a-z]+ [A-Z][a-z]+(?:\s[A-Z][a-z]+)?(?:\s[A-Z][a-z]+)?$')

EXPERIENCE_PATTERNS = [
    re.compile(r'(\d+)\+?\s*years?\s*(?:of\s*)?experience', re.I),
    re.compile(r'experience.*?(\d+)\+?\s*years?', re.I),
    re.compile(r'(\d+)\+?\s*years?\s*in', re.I)
]

RESUME_SYSTEM_PROMPT = (
    "You are a professional resume parser. Extract information accurately and "
    "return ONLY valid JSON. No explanations or additional text."
)

RESUME_PROMPT = """You are an expert resume parser. Extract ALL relevant information from this resume text.

If the text starts with "PDF Document:", text extraction failed for that file. Derive the
candidate's name from the file name if possible.

Return ONLY valid JSON with this exact structure:

{
  "name": "Full Name (from the header/top of the resume)",
  "email": "email@example.com",
  "phone": "phone number or null",
  "location": "city, country or null",
  "summary": "2-3 sentence professional summary: years of experience, key skills, specializations",
  "skills": ["skill1", "skill2"],
  "experience": [
    {"company": "Company Name", "role": "Position Title", "duration": "Start - End dates", "description": "Role and key achievements"}
  ],
  "education": [
    {"institution": "University/School Name", "degree": "Degree Type", "field": "Field of Study", "year": "Year or duration"}
  ],
  "linkedin": "LinkedIn URL or null",
  "github": "GitHub URL or null",
  "portfolio": "Portfolio URL or null"
}

Guidelines:
- The name is usually the first line; skip headers like "Resume", "CV", "Curriculum Vitae".
- Extract every technical and soft skill, including those mentioned in experience descriptions.
- Include internships, part-time work and research positions under experience.
- Include graduation dates and relevant coursework under education where available.

Resume text to parse:
"""


class UnsupportedFileError(Exception):
    """The upload's type has no text extractor"""


@dataclass
class ExtractionResult:
    success: bool
    text: str = ''
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def extract_text_from_pdf(data: bytes, file_name: str, min_text_length: int = MIN_RESUME_TEXT_LENGTH) -> ExtractionResult:
    """Extract text from PDF bytes.

    When the PDF yields fewer than ``min_text_length`` characters, or cannot be
    read at all, the result is unsuccessful and its text is a placeholder
    starting with ``PDF Document: <file name>`` so the candidate can still be
    stored and re-extracted later.
    """
    start_time = time.monotonic()
    metadata = {
        'fileName': file_name,
        'fileSize': len(data),
        'extractionMethod': 'pypdf2'
    }

    try:
        reader = PyPDF2.PdfReader(BytesIO(data))
        pages = []
        for page in reader.pages:
            pages.append(page.extract_text() or "")

        text = "\n".join(pages).strip()
        metadata['numPages'] = len(reader.pages)
        metadata['textLength'] = len(text)
        metadata['processingTime'] = int((time.monotonic() - start_time) * 1000)

        logger.info(f"PDF parsed: {metadata['numPages']} pages, {len(text)} characters")

        if len(text) >= min_text_length:
            return ExtractionResult(success=True, text=text, metadata=metadata)

        logger.warning(f"PDF text extraction returned minimal content ({len(text)} chars) for {file_name}")
        metadata['extractionMethod'] = 'fallback'
        placeholder = (
            f"PDF Document: {file_name}\n"
            f"File Size: {len(data)} bytes\n"
            f"Pages: {metadata['numPages']}\n"
            "Note: PDF text extraction returned minimal content. The PDF might be "
            "image-based, encrypted, or have formatting issues."
        )
        return ExtractionResult(success=False, text=placeholder, error='Minimal text content extracted', metadata=metadata)

    except Exception as e:
        logger.error(f"Error extracting text from PDF {file_name}: {e}")
        metadata['extractionMethod'] = 'fallback'
        metadata['processingTime'] = int((time.monotonic() - start_time) * 1000)
        placeholder = (
            f"PDF Document: {file_name}\n"
            f"File Size: {len(data)} bytes\n"
            f"Note: PDF text extraction failed. Error: {e}"
        )
        return ExtractionResult(success=False, text=placeholder, error=str(e), metadata=metadata)

PDF_TEST_CONFIGS = (
    ('Standard', 50),
    ('Lenient', 10),
    ('Strict', 100)
)

def pdf_extraction_recommendations(results: List[Dict[str, Any]]) -> List[str]:
    successful = [r for r in results if r['success']]
    recommendations = []

    if not successful:
        recommendations.append('All extraction methods failed - PDF may be image-based or corrupted')
        recommendations.append('Try converting the PDF to text format or using OCR')
    elif len(successful) < len(results):
        recommendations.append('Some extraction methods failed - PDF has extraction challenges')
        recommendations.append('Use lenient settings for better compatibility')
    else:
        recommendations.append('All extraction methods succeeded - PDF is well-formatted')

    best_quality = max(r['qualityCheck']['score'] for r in results)
    if best_quality < 50:
        recommendations.append('Low quality extraction detected - consider manual review')
    elif best_quality > 80:
        recommendations.append('High quality extraction - text is reliable')

    return recommendations

def diagnose_pdf_extraction(data: bytes, file_name: str) -> Dict[str, Any]:
    """Run PDF extraction at several minimum lengths and grade each result"""
    results = []
    for config_name, min_length in PDF_TEST_CONFIGS:
        extraction = extract_text_from_pdf(data, file_name, min_text_length=min_length)
        results.append({
            'config': config_name,
            'success': extraction.success,
            'textLength': len(extraction.text),
            'error': extraction.error,
            'metadata': extraction.metadata,
            'qualityCheck': validate_extraction_quality(extraction.text, file_name, min_length),
            'preview': extraction.text[:200] or 'No text'
        })
        logger.debug(f"{config_name} extraction of {file_name}: success={extraction.success}, "
                     f"{len(extraction.text)} chars")

    best = next((r for r in results if r['success'] and r['textLength'] > MIN_RESUME_TEXT_LENGTH), results[0])
    return {
        'testResults': results,
        'bestResult': best,
        'recommendations': pdf_extraction_recommendations(results)
    }

def extract_text_from_docx(data: bytes) -> str:
    """Extract text from DOCX bytes"""
    document = docx.Document(BytesIO(data))
    return "\n".join(paragraph.text for paragraph in document.paragraphs).strip()

def extract_text_from_txt(data: bytes) -> str:
    """Decode a plain-text upload"""
    try:
        return data.decode('utf-8').strip()
    except UnicodeDecodeError:
        # Try with different encoding
        return data.decode('latin-1').strip()

def extract_text_from_file(data: bytes, file_name: str, content_type: Optional[str] = None) -> str:
    """Extract text from various file formats.

    PDFs never raise: an unreadable PDF returns its placeholder text. Word 97
    ``.doc`` files and unknown types raise UnsupportedFileError.
    """
    extension = get_file_extension(file_name)
    content_type = (content_type or '').split(';')[0].strip()

    if content_type == 'application/pdf' or extension == '.pdf':
        return extract_text_from_pdf(data, file_name).text
    if extension == '.docx' or content_type.endswith('wordprocessingml.document'):
        return extract_text_from_docx(data)
    if extension == '.doc' or content_type == 'application/msword':
        raise UnsupportedFileError("Word 97-2003 documents are not supported. Please convert to PDF or DOCX, or paste the text.")
    if content_type == 'text/plain' or extension == '.txt':
        return extract_text_from_txt(data)

    raise UnsupportedFileError(f"Unsupported file type: {content_type or extension or 'unknown'}. Please use TXT, PDF or DOCX files.")


def find_skills(text: str, keywords: List[str]) -> List[str]:
    """Known skill keywords present in text, matched case-insensitively as whole tokens"""
    found = []
    for skill in keywords:
        pattern = r'(?<![A-Za-z0-9+#.])' + re.escape(skill) + r'(?![A-Za-z0-9+#])'
        if re.search(pattern, text, re.IGNORECASE):
            found.append(skill)
    return found

def extract_experience_years(text: str) -> int:
    """Years of experience stated in free text, or 0"""
    for pattern in EXPERIENCE_PATTERNS:
        match = pattern.search(text or '')
        if match:
            years = int(match.group(1))
            if 0 < years < 50:
                return years

    return 0

def name_from_filename(file_name: str) -> str:
    """'jane_doe-resume_2024.pdf' -> 'Jane Doe'"""
    name = re.sub(r'\.(pdf|doc|docx|txt)$', '', file_name or '', flags=re.I)
    name = re.sub(r'[_-]', ' ', name)
    name = re.sub(r'\b(cv|resume|curriculum|vitae)\b', '', name, flags=re.I)
    name = re.sub(r'\d+', '', name).strip()

    if len(name) <= 2:
        return UNKNOWN_CANDIDATE

    return ' '.join(word.capitalize() for word in name.split())

def is_generic_name(name: Optional[str]) -> bool:
    """Names the pipeline assigns when it could not find a real one"""
    if not name:
        return True

    return name in (UNKNOWN_CANDIDATE, FAILED_TO_PARSE) or bool(re.match(r'^Candidate_\d+$', name))

def fallback_parse_result(resume_text: str) -> Dict[str, Any]:
    """Heuristic parse used while the AI service is unavailable"""
    logger.info("Creating fallback parse result...")

    name = UNKNOWN_CANDIDATE
    for pattern in NAME_PATTERNS:
        match = pattern.search(resume_text)
        if match and match.group(1):
            name = match.group(1).strip()
            break

    email_match = EMAIL_PATTERN.search(resume_text)
    phone_match = LOOSE_PHONE_PATTERN.search(resume_text)
    skills = find_skills(resume_text, FALLBACK_SKILLS)
    years = extract_experience_years(resume_text)

    return {
        'name': name,
        'email': email_match.group(0) if email_match else None,
        'phone': phone_match.group(0).strip() if phone_match else None,
        'location': None,
        'skills': skills or ['General'],
        'experience': [{
            'company': "Experience details available in resume",
            'role': "See full resume text",
            'duration': f"{years} years" if years > 0 else "See resume",
            'description': "Full experience details extracted from resume text"
        }],
        'education': [{
            'institution': "Education details in resume",
            'degree': "See full resume text",
            'year': "See resume"
        }],
        'summary': (
            f"Professional with {f'{years} years of ' if years > 0 else ''}experience. "
            f"Skills include: {', '.join(skills[:3])}. Full details available in resume text."
        ),
        'linkedin': None,
        'github': None,
        'portfolio': None,
        'processingNote': "Parsed using fallback method due to AI service unavailability"
    }

def basic_parse_result(resume_text: str) -> Dict[str, Any]:
    """Minimal structure salvaged from the raw text after the AI reply was unusable"""
    name = UNKNOWN_CANDIDATE
    email = None
    phone = None
    skills = []

    if resume_text:
        placeholder = re.search(r'PDF Document: (.+)', resume_text)
        if placeholder:
            name = name_from_filename(placeholder.group(1).strip())

        lines = [line.strip() for line in resume_text.split('\n') if line.strip()]
        for line in lines[:10]:
            lowered = line.lower()
            # Skip common resume headers and contact info lines
            if ('resume' in lowered or 'curriculum vitae' in lowered or re.search(r'\bcv\b', lowered)
                    or any(label in lowered for label in ('email:', 'phone:', 'mobile:', 'address:', 'linkedin:'))
                    or '@' in line or re.match(r'^\+?\d', line) or re.match(r'^\(\d', line)):
                continue

            if HEADER_NAME_PATTERN.match(line) and 5 < len(line) < 50:
                name = line
                break

        email_match = EMAIL_PATTERN.search(resume_text)
        email = email_match.group(0) if email_match else None

        phone_match = US_PHONE_PATTERN.search(resume_text)
        phone = phone_match.group(0) if phone_match else None

        skills = find_skills(resume_text, COMMON_SKILLS)[:5]

    return {
        'name': name,
        'email': email,
        'phone': phone,
        'location': None,
        'summary': f"Resume uploaded as {name}. Automatic parsing failed - manual review recommended.",
        'skills': skills,
        'experience': [],
        'education': [],
        'linkedin': None,
        'github': None,
        'portfolio': None
    }

def _clean_optional(value):
    if value is None:
        return None
    value = str(value).strip()
    return None if value.lower() in ('', 'null', 'none', 'n/a') else value

def normalize_parsed_resume(result: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a model reply into the stored ai_data shape"""
    for key in ('skills', 'experience', 'education'):
        if not isinstance(result.get(key), list):
            result[key] = []

    result['skills'] = [str(skill).strip() for skill in result['skills'] if str(skill).strip()]
    result['experience'] = [entry for entry in result['experience'] if isinstance(entry, dict)]
    result['education'] = [entry for entry in result['education'] if isinstance(entry, dict)]

    for key in ('name', 'email', 'phone', 'location', 'summary', 'linkedin', 'github', 'portfolio'):
        result[key] = _clean_optional(result.get(key))

    if not result['name']:
        result['name'] = UNKNOWN_CANDIDATE

    return result

def parse_resume_with_ai(resume_text: str) -> Dict[str, Any]:
    """Parse resume text into structured data with the chat model.

    Never raises. If the service is unavailable (no key, quota, rate limit,
    5xx, network) the heuristic ``fallback_parse_result`` is returned; any
    other failure, such as an unparseable reply, returns ``basic_parse_result``.
    """
    try:
        try:
            result = ai_client.chat_json(RESUME_SYSTEM_PROMPT, RESUME_PROMPT + resume_text, temperature=0.1, max_tokens=2000)
        except Exception as api_error:
            if ai_client.is_unavailable_error(api_error):
                logger.warning(f"AI service unavailable ({api_error}), using fallback parsing...")
                return fallback_parse_result(resume_text)
            raise

        return normalize_parsed_resume(result)

    except Exception as e:
        logger.error(f"Error parsing resume with AI: {e}")
        return basic_parse_result(resume_text)

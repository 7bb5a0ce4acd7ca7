import os
import re
import math
import time
import logging
from functools import wraps
from typing import List, Dict, Optional

from models import JobStatus

logger = logging.getLogger(__name__)

ALLOWED_RESUME_TYPES = {
    'text/plain',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
}
ALLOWED_RESUME_EXTENSIONS = {'.txt', '.pdf', '.doc', '.docx'}

CONTENT_TYPES = {
    '.pdf': 'application/pdf',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.txt': 'text/plain'
}

PLACEHOLDER_PATTERNS = [
    re.compile(r'PDF Document:'),
    re.compile(r'Note: PDF text extraction'),
    re.compile(r'PDF_PLACEHOLDER'),
    re.compile(r'Failed to parse PDF'),
    re.compile(r'Note: Text extraction failed')
]

def validate_email(email: str) -> bool:
    """Validate email address format"""
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))

def slugify(name: str) -> str:
    """Build a URL-friendly organization slug ("TechCorp Inc." -> "techcorp-inc")"""
    slug = re.sub(r'\s+', '-', (name or '').strip().lower())
    return re.sub(r'[^a-z0-9-]', '', slug)

def sanitize_filename(filename: str) -> str:
    """Replace anything outside [A-Za-z0-9.-] with underscores"""
    filename = os.path.basename(filename or '') or 'unnamed_file'
    return re.sub(r'[^a-zA-Z0-9.-]', '_', filename)

def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    if not filename:
        return ""

    return os.path.splitext(filename.lower())[1]

def is_cv_file(filename: str, content_type: Optional[str] = None) -> bool:
    """Check if an upload is an accepted resume by MIME type or extension"""
    if content_type and content_type.split(';')[0].strip() in ALLOWED_RESUME_TYPES:
        return True

    return get_file_extension(filename) in ALLOWED_RESUME_EXTENSIONS

def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(get_file_extension(filename), 'application/octet-stream')

def save_uploaded_file(data: bytes, original_name: str, upload_folder: str) -> str:
    """Write an uploaded file as <epoch ms>_<sanitized name>; returns the stored name"""
    os.makedirs(upload_folder, exist_ok=True)

    file_name = f"{int(time.time() * 1000)}_{sanitize_filename(original_name)}"
    with open(os.path.join(upload_folder, file_name), 'wb') as handle:
        handle.write(data)

    return file_name

def is_placeholder_text(text: Optional[str]) -> bool:
    """True when the stored resume text is an extraction-failure placeholder"""
    if not text:
        return False

    return any(pattern.search(text) for pattern in PLACEHOLDER_PATTERNS)

def validate_extraction_quality(text: str, file_name: str, min_length: int = 50) -> Dict:
    """Score extracted resume text out of 100 and list what looks wrong with it"""
    issues = []
    score = 100
    text = text or ''

    if len(text) < min_length:
        issues.append(f"Text too short ({len(text)} chars, minimum {min_length})")
        score -= 40

    if is_placeholder_text(text):
        issues.append("Contains placeholder text indicating extraction failure")
        score -= 30

    meaningful_chars = len(re.sub(r'\s', '', text))
    if text and meaningful_chars / len(text) < 0.1:
        issues.append("Text appears to be mostly whitespace or special characters")
        score -= 20

    if re.search(r'(.)\1{10,}', text) or re.search(r'\s{5,}', text):
        issues.append("Contains extraction artifacts (repeated chars/excessive whitespace)")
        score -= 10

    if issues:
        logger.debug(f"Extraction quality issues for {file_name}: {issues}")

    return {
        'isValid': not issues,
        'issues': issues,
        'score': max(0, score)
    }

def truncate_text(text: str, max_length: int = 200) -> str:
    """Truncate text to specified length with ellipsis"""
    if not text or len(text) <= max_length:
        return text

    return text[:max_length] + "..."

def round_half_up(value: float) -> int:
    """Round .5 upwards, so an average of 50.5 reports as 51"""
    return int(math.floor(value + 0.5))

def parse_int(value, default: Optional[int] = None) -> Optional[int]:
    """Lenient int() for query-string values"""
    if value is None or value == '':
        return default

    try:
        return int(value)
    except (TypeError, ValueError):
        return default

def log_processing_time(func):
    """Decorator to log function processing time"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.monotonic()

        try:
            result = func(*args, **kwargs)
            logger.info(f"{func.__name__} completed in {time.monotonic() - start_time:.2f} seconds")
            return result

        except Exception as e:
            logger.error(f"{func.__name__} failed after {time.monotonic() - start_time:.2f} seconds: {e}")
            raise

    return wrapper

class ConfigHelper:
    """Helper class for configuration management"""

    @staticmethod
    def get_openai_config():
        """Get OpenAI configuration from environment"""
        return {
            'api_key': os.getenv('OPENAI_API_KEY', ''),
            'model': os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
        }

    @staticmethod
    def get_scheduler_config():
        """Get background maintenance configuration from environment"""
        return {
            'enabled': os.getenv('SCHEDULER_ENABLED', 'true').lower() == 'true',
            'reprocess_interval_hours': int(os.getenv('REPROCESS_INTERVAL_HOURS', '6')),
            'daily_report_time': os.getenv('DAILY_REPORT_TIME', '08:00')
        }

# Validation helpers
def non_string_fields(data: Dict, fields) -> List[str]:
    """Name the present, non-null fields that are not strings"""
    return [f"{field} must be a string" for field in fields
            if data.get(field) is not None and not isinstance(data[field], str)]

def validate_organization_data(data: Dict) -> List[str]:
    """Validate organization data and return list of errors"""
    errors = []

    if not data.get('name'):
        errors.append("Organization name is required")

    errors.extend(non_string_fields(data, ('name', 'slug')))
    return errors

def validate_job_data(data: Dict) -> List[str]:
    """Validate job data and return list of errors"""
    missing = [field for field in ('organizationId', 'title', 'description') if not data.get(field)]
    if missing:
        return ["organizationId, title, and description are required"]

    return validate_job_fields(data)

def validate_job_fields(data: Dict) -> List[str]:
    """Validate the optional job fields shared by create and update"""
    errors = non_string_fields(data, ('title', 'description', 'status'))

    status = data.get('status')
    if isinstance(status, str) and status not in [s.value for s in JobStatus]:
        errors.append(f"Invalid status: {status}")

    requirements = data.get('requirements')
    if requirements is not None:
        if not isinstance(requirements, dict):
            errors.append("requirements must be an object")
        elif not isinstance(requirements.get('skills', []), list):
            errors.append("requirements.skills must be a list")

    return errors

def validate_candidate_data(data: Dict) -> List[str]:
    """Validate candidate data and return list of errors"""
    errors = []

    if not data.get('organizationId') or not data.get('jobId') or not data.get('name'):
        errors.append("organizationId, jobId, and name are required")

    type_errors = non_string_fields(data, ('name', 'email', 'resumeText', 'fileName'))
    if type_errors:
        return errors + type_errors

    email = data.get('email')
    if email and not validate_email(email):
        errors.append("Invalid email format")

    return errors

from datetime import datetime
from database import db
from sqlalchemy import Enum
import enum

class JobStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"

class ProcessingStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

class Recommendation(enum.Enum):
    STRONG_FIT = "strong_fit"
    GOOD_FIT = "good_fit"
    POTENTIAL_FIT = "potential_fit"
    WEAK_FIT = "weak_fit"
    NOT_RECOMMENDED = "not_recommended"


def _isoformat(value):
    return value.isoformat() if value else None


class Organization(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    jobs = db.relationship('Job', backref='organization', lazy=True)

    def summary(self):
        return {'id': self.id, 'name': self.name, 'slug': self.slug}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'createdAt': _isoformat(self.created_at)
        }

class Job(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # {"skills": [...], "experience": "5+ years", "location": "Remote"}
    requirements = db.Column(db.JSON, default=dict)
    status = db.Column(Enum(JobStatus), default=JobStatus.ACTIVE, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    candidates = db.relationship('Candidate', backref='job', lazy=True, cascade='all, delete-orphan')
    matches = db.relationship('Match', backref='job', lazy=True, cascade='all, delete-orphan')

    @property
    def required_skills(self):
        return list((self.requirements or {}).get('skills') or [])

    def summary(self):
        return {'id': self.id, 'title': self.title}

    def to_dict(self):
        return {
            'id': self.id,
            'organizationId': self.organization_id,
            'organization': self.organization.summary() if self.organization else None,
            'title': self.title,
            'description': self.description,
            'requirements': {
                'skills': self.required_skills,
                'experience': (self.requirements or {}).get('experience'),
                'location': (self.requirements or {}).get('location')
            },
            'status': self.status.value,
            'createdAt': _isoformat(self.created_at)
        }

class Candidate(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey('job.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200))
    resume_text = db.Column(db.Text)

    # Structured resume data produced by the AI parser (or its fallbacks)
    ai_data = db.Column(db.JSON, default=dict)

    # Uploaded file metadata; file_name is the name on disk, file_path is
    # relative to the working directory (e.g. "uploads/1712_jane_doe.pdf")
    file_name = db.Column(db.String(255))
    original_file_name = db.Column(db.String(255))
    file_size = db.Column(db.Integer)
    file_type = db.Column(db.String(100))
    file_path = db.Column(db.String(512))

    processing_status = db.Column(Enum(ProcessingStatus), default=ProcessingStatus.PENDING, nullable=False)
    processing_error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = db.relationship('Organization')
    matches = db.relationship('Match', backref='candidate', lazy=True, cascade='all, delete-orphan')

    @property
    def skills(self):
        return list((self.ai_data or {}).get('skills') or [])

    def summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}

    def to_dict(self, include_resume=True):
        data = {
            'id': self.id,
            'organizationId': self.organization_id,
            'organization': {'id': self.organization.id, 'name': self.organization.name} if self.organization else None,
            'jobId': self.job_id,
            'job': self.job.summary() if self.job else None,
            'name': self.name,
            'email': self.email,
            'aiData': self.ai_data or {},
            'fileName': self.file_name,
            'originalFileName': self.original_file_name,
            'fileSize': self.file_size,
            'fileType': self.file_type,
            'filePath': self.file_path,
            'processingStatus': self.processing_status.value,
            'processingError': self.processing_error,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }
        if include_resume:
            data['resumeText'] = self.resume_text
        return data

class Match(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey('job.id'), nullable=False)
    candidate_id = db.Column(db.Integer, db.ForeignKey('candidate.id'), nullable=False)

    # AI-generated match information
    score = db.Column(db.Integer, nullable=False)  # 0-100
    explanation = db.Column(db.Text)
    strengths = db.Column(db.JSON, default=list)
    concerns = db.Column(db.JSON, default=list)
    recommendation = db.Column(db.String(50))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organization = db.relationship('Organization')

    # One match per job/candidate pair
    __table_args__ = (db.UniqueConstraint('job_id', 'candidate_id'),)

    def to_dict(self):
        candidate = self.candidate
        return {
            'id': self.id,
            'organizationId': self.organization_id,
            'organization': {'id': self.organization.id, 'name': self.organization.name} if self.organization else None,
            'jobId': self.job_id,
            'job': self.job.summary() if self.job else None,
            'candidateId': self.candidate_id,
            'candidate': {
                'id': candidate.id,
                'name': candidate.name,
                'email': candidate.email,
                'aiData': candidate.ai_data or {},
                'fileName': candidate.file_name,
                'createdAt': _isoformat(candidate.created_at)
            } if candidate else None,
            'score': self.score,
            'explanation': self.explanation,
            'strengths': self.strengths or [],
            'concerns': self.concerns or [],
            'recommendation': self.recommendation,
            'createdAt': _isoformat(self.created_at)
        }

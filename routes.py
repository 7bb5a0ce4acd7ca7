import os
import time
import logging
from collections import OrderedDict
from datetime import datetime

from flask import render_template, request, jsonify, current_app, send_file
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError

from database import db
from models import Organization, Job, Candidate, Match, JobStatus, ProcessingStatus
from cv_parser import MIN_RESUME_TEXT_LENGTH, diagnose_pdf_extraction, is_generic_name, parse_resume_with_ai
from job_matcher import NoCandidatesError, generate_matches, match_statistics
from resume_pipeline import (
    UploadValidationError, apply_parsed_resume, new_upload_id, process_resume_upload,
    reextract_placeholder_candidates, reprocess_generic_candidates
)
from utils import (
    content_type_for, non_string_fields, parse_int, round_half_up, slugify, truncate_text,
    validate_email, validate_candidate_data, validate_job_data, validate_job_fields, validate_organization_data
)

logger = logging.getLogger(__name__)

SEARCH_TYPES = ('all', 'candidates', 'jobs', 'skills')


def success_response(data=None, status=200, **extra):
    body = {'success': True}
    if data is not None:
        body['data'] = data
    body.update(extra)
    return jsonify(body), status

def error_response(message, status, **extra):
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status

def json_body():
    """The JSON object body ({} when absent), or None for any other JSON value"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None

def id_filter(name):
    """Read an integer id from the query string; returns (value, error message)"""
    raw = request.args.get(name)
    if raw in (None, ''):
        return None, None

    value = parse_int(raw)
    if value is None:
        return None, f"Invalid {name}"
    return value, None

def candidate_relevance(candidate, term):
    """Rank a search hit: name 40, skills 15 each (max 30), summary 20, email 10"""
    ai_data = candidate.ai_data or {}
    score = 0

    if term in (candidate.name or '').lower():
        score += 40

    skill_hits = len([skill for skill in candidate.skills if term in str(skill).lower()])
    score += min(skill_hits * 15, 30)

    if term in str(ai_data.get('summary') or '').lower():
        score += 20

    if term in (candidate.email or '').lower():
        score += 10

    return min(score, 100)

def search_candidates(term, limit):
    results = []
    for candidate in Candidate.query.order_by(Candidate.created_at.desc()).all():
        ai_data = candidate.ai_data or {}
        fields = [candidate.name, candidate.email, ai_data.get('summary'), ai_data.get('location')]
        fields.extend(candidate.skills)
        if not any(term in str(value).lower() for value in fields if value):
            continue

        experience = ai_data.get('experience') or []
        first_role = experience[0].get('role') if experience and isinstance(experience[0], dict) else None
        results.append({
            'id': candidate.id,
            'name': candidate.name,
            'email': candidate.email,
            'skills': candidate.skills,
            'experience': first_role or 'Not specified',
            'location': ai_data.get('location') or 'Not specified',
            'jobTitle': candidate.job.title if candidate.job else 'Unknown Job',
            'matchScore': candidate_relevance(candidate, term)
        })
        if len(results) >= limit:
            break

    return results

def search_jobs(term, limit):
    results = []
    for job in Job.query.order_by(Job.created_at.desc()).all():
        requirements = job.requirements or {}
        fields = [job.title, job.description, requirements.get('location'), requirements.get('experience')]
        fields.extend(job.required_skills)
        if not any(term in str(value).lower() for value in fields if value):
            continue

        results.append({
            'id': job.id,
            'title': job.title,
            'description': truncate_text(job.description, 150),
            'location': requirements.get('location') or 'Not specified',
            'status': job.status.value,
            'requirements': {
                'skills': job.required_skills,
                'experience': requirements.get('experience') or 'Not specified'
            },
            'organizationName': job.organization.name if job.organization else 'Unknown Organization',
            'candidateCount': Candidate.query.filter_by(job_id=job.id).count()
        })
        if len(results) >= limit:
            break

    return results

def search_skills(term, limit):
    skills = OrderedDict()

    def count(skill, key):
        name = str(skill).strip()
        if not name or term not in name.lower():
            return
        entry = skills.setdefault(name.lower(), {'name': name, 'candidateCount': 0, 'jobCount': 0})
        entry[key] += 1

    for candidate in Candidate.query.all():
        for skill in candidate.skills:
            count(skill, 'candidateCount')

    for job in Job.query.all():
        for skill in job.required_skills:
            count(skill, 'jobCount')

    ranked = sorted(skills.values(), key=lambda s: s['candidateCount'] + s['jobCount'], reverse=True)
    return ranked[:limit]


def register_routes(app):
    @app.errorhandler(413)
    def request_too_large(error):
        return error_response('Uploaded file is too large', 413)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error(f"Unhandled error on {request.path}: {getattr(error, 'original_exception', error)}")
        return error_response('Internal server error', 500)

    @app.route('/')
    def dashboard():
        total_jobs = Job.query.count()
        active_jobs = Job.query.filter_by(status=JobStatus.ACTIVE).count()
        total_candidates = Candidate.query.count()
        total_matches = Match.query.count()
        high_matches = Match.query.filter(Match.score >= 80).count()

        jobs = Job.query.order_by(Job.created_at.desc()).all()
        candidate_counts = dict(
            db.session.query(Candidate.job_id, func.count(Candidate.id)).group_by(Candidate.job_id).all()
        )

        top_matches = Match.query.order_by(Match.score.desc(), Match.created_at.desc()).limit(10).all()
        recent_candidates = Candidate.query.order_by(Candidate.created_at.desc()).limit(5).all()
        organizations = Organization.query.order_by(Organization.name).all()

        return render_template('dashboard.html',
                               total_jobs=total_jobs,
                               active_jobs=active_jobs,
                               total_candidates=total_candidates,
                               total_matches=total_matches,
                               high_matches=high_matches,
                               jobs=jobs,
                               organizations=organizations,
                               candidate_counts=candidate_counts,
                               top_matches=top_matches,
                               recent_candidates=recent_candidates)

    @app.route('/api/test', methods=['GET'])
    def api_test():
        """Health check with a database round trip"""
        try:
            db.session.execute(text('SELECT 1'))
            return success_response(message='API is working', database='Connected successfully',
                                    timestamp=datetime.utcnow().isoformat())
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return error_response('Database connection failed', 500)

    # Organizations
    @app.route('/api/organizations', methods=['GET'])
    def api_list_organizations():
        try:
            organizations = Organization.query.order_by(Organization.created_at.desc(), Organization.id.desc()).all()
            return success_response([org.to_dict() for org in organizations], count=len(organizations))
        except Exception as e:
            logger.error(f"Error fetching organizations: {e}")
            return error_response('Failed to fetch organizations', 500)

    @app.route('/api/organizations', methods=['POST'])
    def api_create_organization():
        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)

        errors = validate_organization_data(data)
        if errors:
            return error_response(errors[0], 400)

        slug = data.get('slug') or slugify(data['name'])
        if Organization.query.filter_by(slug=slug).first():
            return error_response('Organization with this slug already exists', 400)

        try:
            organization = Organization(name=data['name'], slug=slug)
            db.session.add(organization)
            db.session.commit()
            return success_response(organization.to_dict(), 201, message='Organization created successfully')
        except IntegrityError:
            db.session.rollback()
            return error_response('Organization with this slug already exists', 400)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating organization: {e}")
            return error_response('Failed to create organization', 500)

    # Jobs
    @app.route('/api/jobs', methods=['GET'])
    def api_list_jobs():
        organization_id, error = id_filter('organizationId')
        if error:
            return error_response(error, 400)

        page = max(parse_int(request.args.get('page'), 1), 1)
        limit = max(parse_int(request.args.get('limit'), 10), 1)

        try:
            query = Job.query
            if organization_id is not None:
                query = query.filter(Job.organization_id == organization_id)

            status = request.args.get('status')
            if status:
                if status not in [s.value for s in JobStatus]:
                    return error_response(f"Invalid status: {status}", 400)
                query = query.filter(Job.status == JobStatus(status))

            jobs = query.order_by(Job.created_at.desc(), Job.id.desc()).paginate(
                page=page, per_page=limit, error_out=False
            )

            return success_response([job.to_dict() for job in jobs.items], pagination={
                'page': page,
                'limit': limit,
                'total': jobs.total,
                'pages': jobs.pages
            })
        except Exception as e:
            logger.error(f"Error fetching jobs: {e}")
            return error_response('Failed to fetch jobs', 500)

    @app.route('/api/jobs', methods=['POST'])
    def api_create_job():
        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)

        errors = validate_job_data(data)
        if errors:
            return error_response(errors[0], 400)

        organization = db.session.get(Organization, parse_int(data['organizationId'], 0))
        if not organization:
            return error_response('Organization not found', 404)

        try:
            job = Job(
                organization_id=organization.id,
                title=data['title'],
                description=data['description'],
                requirements=data.get('requirements') or {},
                status=JobStatus(data.get('status') or JobStatus.ACTIVE.value)
            )
            db.session.add(job)
            db.session.commit()
            logger.info(f"Created job {job.id}: {job.title}")
            return success_response(job.to_dict(), 201, message='Job created successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating job: {e}")
            return error_response('Failed to create job', 500)

    @app.route('/api/jobs/<int:job_id>', methods=['GET'])
    def api_get_job(job_id):
        job = db.session.get(Job, job_id)
        if not job:
            return error_response('Job not found', 404)
        return success_response(job.to_dict())

    @app.route('/api/jobs/<int:job_id>', methods=['PUT'])
    def api_update_job(job_id):
        job = db.session.get(Job, job_id)
        if not job:
            return error_response('Job not found', 404)

        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)
        errors = validate_job_fields(data)
        for field in ('title', 'description'):
            if field in data and not data[field]:
                errors.append(f"{field} cannot be empty")
        if errors:
            return error_response(errors[0], 400)

        try:
            if 'title' in data:
                job.title = data['title']
            if 'description' in data:
                job.description = data['description']
            if 'requirements' in data:
                job.requirements = data['requirements'] or {}
            if data.get('status'):
                job.status = JobStatus(data['status'])

            db.session.commit()
            return success_response(job.to_dict(), message='Job updated successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating job {job_id}: {e}")
            return error_response('Failed to update job', 500)

    @app.route('/api/jobs/<int:job_id>', methods=['DELETE'])
    def api_delete_job(job_id):
        job = db.session.get(Job, job_id)
        if not job:
            return error_response('Job not found', 404)

        try:
            db.session.delete(job)
            db.session.commit()
            return success_response(message='Job deleted successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting job {job_id}: {e}")
            return error_response('Failed to delete job', 500)

    # Candidates
    @app.route('/api/candidates', methods=['GET'])
    def api_list_candidates():
        organization_id, error = id_filter('organizationId')
        job_id, job_error = id_filter('jobId')
        if error or job_error:
            return error_response(error or job_error, 400)

        try:
            query = Candidate.query
            if organization_id is not None:
                query = query.filter(Candidate.organization_id == organization_id)
            if job_id is not None:
                query = query.filter(Candidate.job_id == job_id)

            candidates = query.order_by(Candidate.created_at.desc(), Candidate.id.desc()).all()
            return success_response([c.to_dict(include_resume=False) for c in candidates], count=len(candidates))
        except Exception as e:
            logger.error(f"Error fetching candidates: {e}")
            return error_response('Failed to fetch candidates', 500)

    @app.route('/api/candidates', methods=['POST'])
    def api_create_candidate():
        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)

        errors = validate_candidate_data(data)
        if errors:
            return error_response(errors[0], 400)

        job = db.session.get(Job, parse_int(data['jobId'], 0))
        if not job:
            return error_response('Job not found', 404)
        if not db.session.get(Organization, parse_int(data['organizationId'], 0)):
            return error_response('Organization not found', 404)

        try:
            resume_text = data.get('resumeText') or ''
            ai_data = {}
            if len(resume_text.strip()) > MIN_RESUME_TEXT_LENGTH:
                logger.info("Processing resume with AI...")
                ai_data = parse_resume_with_ai(resume_text)

            name = ai_data.get('name')
            if is_generic_name(name):
                name = data['name']

            parsed_email = ai_data.get('email')
            candidate = Candidate(
                organization_id=parse_int(data['organizationId']),
                job_id=job.id,
                name=name,
                email=data.get('email') or (parsed_email if parsed_email and parsed_email != 'null' else None),
                resume_text=resume_text or None,
                ai_data=ai_data,
                file_name=data.get('fileName'),
                processing_status=ProcessingStatus.COMPLETED
            )
            db.session.add(candidate)
            db.session.commit()
            return success_response(candidate.to_dict(), 201, message='Candidate created and processed successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Candidate creation error: {e}")
            return error_response('Failed to create candidate', 500)

    @app.route('/api/candidates/<int:candidate_id>', methods=['GET'])
    def api_get_candidate(candidate_id):
        candidate = db.session.get(Candidate, candidate_id)
        if not candidate:
            return error_response('Candidate not found', 404)
        return success_response(candidate.to_dict())

    @app.route('/api/candidates/<int:candidate_id>', methods=['PUT'])
    def api_update_candidate(candidate_id):
        candidate = db.session.get(Candidate, candidate_id)
        if not candidate:
            return error_response('Candidate not found', 404)

        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)
        type_errors = non_string_fields(data, ('name', 'email', 'processingStatus'))
        if type_errors:
            return error_response(type_errors[0], 400)
        if 'name' in data and not data['name']:
            return error_response('name cannot be empty', 400)
        if data.get('email') and not validate_email(data['email']):
            return error_response('Invalid email format', 400)

        status = data.get('processingStatus')
        if status is not None and status not in [s.value for s in ProcessingStatus]:
            return error_response(f"Invalid processingStatus: {status}", 400)

        try:
            if 'name' in data:
                candidate.name = data['name']
            if 'email' in data:
                candidate.email = data['email'] or None
            if status is not None:
                candidate.processing_status = ProcessingStatus(status)
            candidate.updated_at = datetime.utcnow()

            db.session.commit()
            return success_response(candidate.to_dict(), message='Candidate updated successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Update candidate error: {e}")
            return error_response('Failed to update candidate', 500)

    @app.route('/api/candidates/<int:candidate_id>', methods=['DELETE'])
    def api_delete_candidate(candidate_id):
        candidate = db.session.get(Candidate, candidate_id)
        if not candidate:
            return error_response('Candidate not found', 404)

        try:
            db.session.delete(candidate)
            db.session.commit()
            return success_response(message='Candidate deleted successfully')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Delete candidate error: {e}")
            return error_response('Failed to delete candidate', 500)

    @app.route('/api/candidates/<int:candidate_id>/download', methods=['GET'])
    def api_download_candidate_file(candidate_id):
        candidate = db.session.get(Candidate, candidate_id)
        if not candidate:
            return error_response('Candidate not found', 404)

        if not candidate.file_path:
            return error_response('No CV file found for this candidate', 404)

        full_path = os.path.abspath(candidate.file_path)
        if not os.path.isfile(full_path):
            logger.error(f"Stored file missing for candidate {candidate_id}: {full_path}")
            return error_response('File not found or could not be read', 404)

        download_name = candidate.original_file_name or candidate.file_name or 'CV.pdf'
        return send_file(full_path, mimetype=content_type_for(download_name),
                         as_attachment=True, download_name=download_name)

    @app.route('/api/candidates/<int:candidate_id>/update-text', methods=['POST'])
    def api_update_candidate_text(candidate_id):
        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)
        resume_text = data.get('resumeText') or ''
        if not isinstance(resume_text, str) or len(resume_text.strip()) < MIN_RESUME_TEXT_LENGTH:
            return error_response('Resume text is required and must be at least 50 characters', 400)

        candidate = db.session.get(Candidate, candidate_id)
        if not candidate:
            return error_response('Candidate not found', 404)

        try:
            logger.info(f"Updating candidate {candidate_id} with manual text input ({len(resume_text)} chars)")
            apply_parsed_resume(candidate, resume_text)
            candidate.processing_status = ProcessingStatus.COMPLETED
            candidate.processing_error = None
            db.session.commit()
            return success_response(candidate.to_dict(), message='Candidate updated successfully with AI-processed data')
        except Exception as e:
            db.session.rollback()
            logger.error(f"Update text error: {e}")
            return error_response('Failed to update candidate', 500)

    @app.route('/api/candidates/reprocess', methods=['POST'])
    def api_reprocess_candidates():
        try:
            result = reprocess_generic_candidates()
            return success_response(result, message=f"Reprocessed {result['processed']} candidates, updated {result['updated']} names")
        except Exception as e:
            db.session.rollback()
            logger.error(f"Reprocessing error: {e}")
            return error_response('Failed to reprocess candidates', 500)

    @app.route('/api/candidates/reextract', methods=['POST'])
    @app.route('/api/candidates/reextract-pdfs', methods=['POST'])
    def api_reextract_candidates():
        try:
            result = reextract_placeholder_candidates()
            return success_response(result, message=f"Re-extracted {result['processed']} PDFs, updated {result['updated']} candidates")
        except Exception as e:
            db.session.rollback()
            logger.error(f"PDF re-extraction error: {e}")
            return error_response('Failed to re-extract PDFs', 500)

    @app.route('/api/test-pdf', methods=['GET'])
    def api_test_pdf():
        """Re-run PDF extraction against a stored upload and report its quality"""
        test_id = f"test_{int(time.time() * 1000)}"
        upload_folder = current_app.config['UPLOAD_FOLDER']

        try:
            available_files = sorted(name for name in os.listdir(upload_folder) if name.lower().endswith('.pdf'))
        except OSError as e:
            logger.warning(f"[{test_id}] Could not read uploads directory: {e}")
            available_files = []

        if not available_files:
            return error_response('No PDF files available for testing', 404, testId=test_id, availableFiles=[],
                                  suggestion='Upload a PDF file first, then try this endpoint again')

        # Stored names start with the upload time, so the last one is the newest
        requested = request.args.get('file')
        file_name = requested if requested in available_files else available_files[-1]
        full_path = os.path.join(upload_folder, file_name)

        try:
            with open(full_path, 'rb') as handle:
                data = handle.read()

            logger.info(f"[{test_id}] Testing PDF extraction: {file_name} ({len(data)} bytes)")
            diagnosis = diagnose_pdf_extraction(data, file_name)
            successful = [r for r in diagnosis['testResults'] if r['success']]

            stat = os.stat(full_path)
            diagnosis.update({
                'fileName': file_name,
                'fileStats': {
                    'size': stat.st_size,
                    'modified': datetime.utcfromtimestamp(stat.st_mtime).isoformat()
                },
                'availableFiles': available_files,
                'fullText': successful[0]['preview'] if successful else 'No text available'
            })
            return success_response(diagnosis, testId=test_id,
                                    message=f"PDF extraction test completed with {len(successful)}/"
                                            f"{len(diagnosis['testResults'])} successful configurations")
        except Exception as e:
            logger.error(f"[{test_id}] Test PDF error: {e}")
            return error_response(str(e), 500, testId=test_id)

    @app.route('/api/upload', methods=['POST'])
    def api_upload_resume():
        upload_id = new_upload_id()

        file = request.files.get('file')
        if not file or not file.filename:
            return error_response('No file provided', 400, uploadId=upload_id)

        job_id = parse_int(request.form.get('jobId'))
        organization_id = parse_int(request.form.get('organizationId'))
        if not request.form.get('jobId') or not request.form.get('organizationId'):
            return error_response('jobId and organizationId are required', 400, uploadId=upload_id)

        job = db.session.get(Job, job_id) if job_id is not None else None
        if not job:
            return error_response('Job not found', 404, uploadId=upload_id)
        if organization_id is None or not db.session.get(Organization, organization_id):
            return error_response('Organization not found', 404, uploadId=upload_id)

        try:
            outcome = process_resume_upload(file, organization_id, job.id,
                                            current_app.config['UPLOAD_FOLDER'], upload_id=upload_id)
            return success_response(outcome.to_dict(),
                                    message='File uploaded, processed, and candidate created successfully')
        except UploadValidationError as e:
            logger.error(f"[{upload_id}] Upload rejected: {e}")
            return error_response(str(e), 400, uploadId=upload_id)
        except Exception as e:
            db.session.rollback()
            logger.error(f"[{upload_id}] Upload process failed: {e}")
            return error_response('File upload failed', 500, uploadId=upload_id)

    # Matches
    @app.route('/api/matches', methods=['GET'])
    def api_list_matches():
        job_id, error = id_filter('jobId')
        organization_id, org_error = id_filter('organizationId')
        if error or org_error:
            return error_response(error or org_error, 400)

        try:
            query = Match.query
            if job_id is not None:
                query = query.filter(Match.job_id == job_id)
            if organization_id is not None:
                query = query.filter(Match.organization_id == organization_id)

            min_score = parse_int(request.args.get('minScore'))
            if min_score is not None:
                query = query.filter(Match.score >= min_score)

            matches = query.order_by(Match.score.desc(), Match.created_at.desc()).all()
            return success_response([match.to_dict() for match in matches], count=len(matches))
        except Exception as e:
            logger.error(f"Get matches error: {e}")
            return error_response('Failed to fetch matches', 500)

    @app.route('/api/matches/<int:job_id>', methods=['GET'])
    def api_job_matches(job_id):
        limit = max(parse_int(request.args.get('limit'), 20), 1)
        min_score = parse_int(request.args.get('minScore'))

        try:
            query = Match.query.filter(Match.job_id == job_id)
            if min_score is not None:
                query = query.filter(Match.score >= min_score)

            matches = query.order_by(Match.score.desc()).limit(limit).all()
            scores = [score for (score,) in db.session.query(Match.score).filter(Match.job_id == job_id).all()]

            return success_response([match.to_dict() for match in matches],
                                    stats=match_statistics(scores), count=len(matches))
        except Exception as e:
            logger.error(f"Get job matches error: {e}")
            return error_response('Failed to fetch job matches', 500)

    @app.route('/api/matches/generate', methods=['POST'])
    def api_generate_matches():
        data = json_body()
        if data is None:
            return error_response('Request body must be a JSON object', 400)
        if not data.get('jobId'):
            return error_response('jobId is required', 400)

        job = db.session.get(Job, parse_int(data['jobId'], 0))
        if not job:
            return error_response('Job not found', 404)

        try:
            result = generate_matches(job, regenerate=bool(data.get('regenerate', False)))
            message = f"Generated {result['successfulMatches']} matches successfully"
            if result['errors']:
                message += f" with {result['errors']} errors"
            return success_response(result, message=message)
        except NoCandidatesError as e:
            return error_response(str(e), 400)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Generate matches error: {e}")
            return error_response('Failed to generate matches', 500)

    # Analytics and search
    @app.route('/api/analytics', methods=['GET'])
    def api_analytics():
        organization_id, error = id_filter('organizationId')
        if error:
            return error_response(error, 400)

        try:
            jobs = Job.query
            candidates = Candidate.query
            matches = Match.query
            if organization_id is not None:
                jobs = jobs.filter(Job.organization_id == organization_id)
                candidates = candidates.filter(Candidate.organization_id == organization_id)
                matches = matches.filter(Match.organization_id == organization_id)

            scores = [match.score for match in matches.all()]

            popular = db.session.query(Candidate.job_id, func.count(Candidate.id).label('candidate_count'))
            if organization_id is not None:
                popular = popular.filter(Candidate.organization_id == organization_id)
            popular = popular.group_by(Candidate.job_id).order_by(func.count(Candidate.id).desc()).limit(5).all()

            popular_jobs = []
            for job_id, candidate_count in popular:
                job = db.session.get(Job, job_id)
                if job:
                    popular_jobs.append({'job': job.to_dict(), 'candidateCount': candidate_count})

            return success_response({
                'overview': {
                    'totalOrganizations': Organization.query.count(),
                    'totalJobs': jobs.count(),
                    'totalCandidates': candidates.count(),
                    'totalMatches': len(scores)
                },
                'scoreDistribution': {
                    'excellent': len([s for s in scores if s >= 90]),
                    'good': len([s for s in scores if 70 <= s < 90]),
                    'fair': len([s for s in scores if 50 <= s < 70]),
                    'poor': len([s for s in scores if s < 50])
                },
                'recentActivity': {
                    'jobs': [job.to_dict() for job in jobs.order_by(Job.created_at.desc()).limit(5).all()],
                    'candidates': [c.to_dict(include_resume=False)
                                   for c in candidates.order_by(Candidate.created_at.desc()).limit(5).all()]
                },
                'topMatches': [match.to_dict() for match in matches.order_by(Match.score.desc()).limit(10).all()],
                'popularJobs': popular_jobs,
                'averageScore': round_half_up(sum(scores) / len(scores)) if scores else 0
            })
        except Exception as e:
            logger.error(f"Analytics error: {e}")
            return error_response('Failed to fetch analytics', 500)

    @app.route('/api/search', methods=['GET'])
    def api_search():
        start_time = time.monotonic()

        query = (request.args.get('q') or '').strip()
        if not query:
            return error_response('Search query is required', 400)

        search_type = request.args.get('type') or 'all'
        if search_type not in SEARCH_TYPES:
            return error_response(f"Invalid search type: {search_type}", 400)

        limit = parse_int(request.args.get('limit'), 10)
        if limit is None or limit < 1 or limit > 50:
            return error_response('Limit must be between 1 and 50', 400)

        try:
            term = query.lower()
            results = {'candidates': [], 'jobs': [], 'skills': [], 'total': 0}

            if search_type in ('all', 'candidates'):
                results['candidates'] = search_candidates(term, limit)
            if search_type in ('all', 'jobs'):
                results['jobs'] = search_jobs(term, limit)
            if search_type in ('all', 'skills'):
                results['skills'] = search_skills(term, limit)

            results['total'] = len(results['candidates']) + len(results['jobs']) + len(results['skills'])

            return success_response(results, query=query,
                                    executionTime=int((time.monotonic() - start_time) * 1000))
        except Exception as e:
            logger.error(f"Search error: {e}")
            return error_response('Search failed', 500)

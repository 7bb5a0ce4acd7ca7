import time
import threading
import logging
import schedule
from datetime import datetime, timedelta

from database import db
from models import Candidate, Job, Match
from resume_pipeline import reextract_placeholder_candidates, reprocess_generic_candidates
from utils import ConfigHelper, log_processing_time

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@log_processing_time
def generate_daily_report():
    """Summarise the last day of recruitment activity into the log.

    Must run inside an application context.
    """
    today = datetime.utcnow().date()
    since = datetime.combine(today - timedelta(days=1), datetime.min.time())

    new_candidates = Candidate.query.filter(Candidate.created_at >= since).count()
    new_matches = Match.query.filter(Match.created_at >= since).count()
    high_matches = Match.query.filter(Match.created_at >= since, Match.score >= 80).count()

    top_matches = db.session.query(Match, Candidate, Job)\
        .join(Candidate, Match.candidate_id == Candidate.id)\
        .join(Job, Match.job_id == Job.id)\
        .filter(Match.created_at >= since)\
        .filter(Match.score >= 70)\
        .order_by(Match.score.desc())\
        .limit(10).all()

    report = {
        'date': today.strftime('%Y-%m-%d'),
        'new_candidates': new_candidates,
        'new_matches': new_matches,
        'high_matches': high_matches,
        'top_matches': [
            {
                'candidate': row.Candidate.name,
                'job': row.Job.title,
                'score': row.Match.score,
                'email': row.Candidate.email
            }
            for row in top_matches
        ]
    }

    logger.info(f"Daily report {report['date']}: {new_candidates} new candidates, "
                f"{new_matches} new matches, {high_matches} high matches")
    for match in report['top_matches']:
        logger.info(f"  {match['candidate']} -> {match['job']}: {match['score']}%")

    return report

@log_processing_time
def run_maintenance():
    """Retry name extraction and PDF text extraction for stuck candidates"""
    reprocessed = reprocess_generic_candidates()
    reextracted = reextract_placeholder_candidates()
    logger.info(f"Maintenance finished: reprocess {reprocessed}, re-extract {reextracted}")
    return {'reprocess': reprocessed, 'reextract': reextracted}

def run_in_app_context(flask_app, task):
    """Scheduled job wrapper; failures are logged so the loop keeps going"""
    with flask_app.app_context():
        try:
            return task()
        except Exception as e:
            logger.error(f"Error running {task.__name__}: {e}")
            db.session.rollback()
            return None

def schedule_tasks(flask_app):
    """Schedule all background tasks"""
    config = ConfigHelper.get_scheduler_config()

    schedule.every().day.at(config['daily_report_time']).do(run_in_app_context, flask_app, generate_daily_report)
    schedule.every(config['reprocess_interval_hours']).hours.do(run_in_app_context, flask_app, run_maintenance)

    logger.info(f"Scheduled tasks configured (daily report at {config['daily_report_time']}, "
                f"maintenance every {config['reprocess_interval_hours']}h)")

def run_scheduler():
    """Run the scheduler loop"""
    logger.info("Starting scheduler...")

    while True:
        try:
            schedule.run_pending()
            time.sleep(60)  # Check every minute
        except KeyboardInterrupt:
            logger.info("Scheduler stopped")
            break
        except Exception as e:
            logger.error(f"Scheduler error: {e}")
            time.sleep(300)  # Wait 5 minutes before retrying

def start_background_services(flask_app):
    """Schedule maintenance jobs and run the scheduler in a daemon thread"""
    logger.info("Starting background services...")

    schedule_tasks(flask_app)

    scheduler_thread = threading.Thread(target=run_scheduler, daemon=True)
    scheduler_thread.start()
    logger.info("Scheduler started")

    return scheduler_thread

if __name__ == '__main__':
    from app import app

    start_background_services(app)

    # Keep main thread alive
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Background services stopped")

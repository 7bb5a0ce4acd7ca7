#!/usr/bin/env python3
"""
Main entry point for the recruitment platform.
This Flask app provides:
- REST API for organizations, jobs, candidates and AI match scores
- Resume upload with text extraction and AI parsing
- Server-rendered dashboard at /
- Background maintenance (daily report, candidate reprocessing)
"""

import os

from app import app
from scheduler import start_background_services
from utils import ConfigHelper

if __name__ == '__main__':
    if ConfigHelper.get_scheduler_config()['enabled']:
        start_background_services(app)

    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", "5000")))

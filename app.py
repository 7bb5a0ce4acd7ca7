import os
import logging
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

# Import database instance
from database import db

load_dotenv()

# Configure logging for debugging
logging.basicConfig(level=getattr(logging, os.environ.get("LOG_LEVEL", "DEBUG").upper(), logging.DEBUG))

# Create the app
app = Flask(__name__)
# The dashboard may be served from another origin, so CORS is opened for
# the `/api/*` namespace only.
CORS(app, resources={r"/api/*": {"origins": os.environ.get("ALLOWED_ORIGINS", "*")}})
app.secret_key = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

# Configure the database
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///recruitment.db")
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

# Configure uploads
app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", "uploads")
app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # request limit, resumes are checked against MAX_RESUME_SIZE
app.config["MAX_RESUME_SIZE"] = 5 * 1024 * 1024

# Seconds to wait between scoring calls while generating matches
app.config["MATCH_REQUEST_DELAY"] = float(os.environ.get("MATCH_REQUEST_DELAY", "1.0"))

# Initialize extensions
db.init_app(app)

# Create upload directory if it doesn't exist
os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

# Import routes and register them with the app
from routes import register_routes
register_routes(app)

with app.app_context():
    # Import models to create tables
    import models  # noqa: F401

    db.create_all()

if __name__ == '__main__':
    # Start background maintenance in a separate thread
    from scheduler import start_background_services
    from utils import ConfigHelper

    if ConfigHelper.get_scheduler_config()['enabled']:
        start_background_services(app)

    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", "5000")), debug=True)

# shlokayug/app.py
import logging
import os

from flask import Flask, current_app, request

from shlokayug import __version__, config
from shlokayug.admin_routes import admin_bp
from shlokayug.auth_routes import auth_bp
from shlokayug.certificate_routes import certificates_bp
from shlokayug.cli import register_commands
from shlokayug.community_routes import community_bp
from shlokayug.course_routes import courses_bp
from shlokayug.database import check_connection
from shlokayug.enrollment_routes import enrollments_bp
from shlokayug.errors import register_error_handlers
from shlokayug.extensions import limiter
from shlokayug.guru_routes import admin_gurus_bp, gurus_bp
from shlokayug.payment_routes import payments_bp
from shlokayug.scheduler import scheduler, start_scheduler
from shlokayug.storage import check_bucket
from shlokayug.utils import now_iso
from shlokayug.video_routes import videos_bp

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
    'Content-Security-Policy': "default-src 'self'",
}


def add_security_headers(response):
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)

    origin = request.headers.get('Origin')
    allowed = current_app.config['CORS_ALLOWED_ORIGINS']
    if origin and (origin in allowed or '*' in allowed):
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
        response.headers['Vary'] = 'Origin'
    return response


def create_app(overrides=None, db=None):
    """Build the Flask app; tests pass an in-memory Firestore as db"""
    app = Flask(__name__)
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)
    if db is not None:
        app.extensions['firestore'] = db

    limiter.init_app(app)
    register_error_handlers(app)
    register_commands(app)
    app.after_request(add_security_headers)

    prefix = f"/api/{app.config['API_VERSION']}"
    app.register_blueprint(auth_bp, url_prefix=f'{prefix}/auth')
    app.register_blueprint(courses_bp, url_prefix=f'{prefix}/courses')
    app.register_blueprint(enrollments_bp, url_prefix=f'{prefix}/enrollments')
    app.register_blueprint(payments_bp, url_prefix=f'{prefix}/payments')
    app.register_blueprint(videos_bp, url_prefix=f'{prefix}/videos')
    app.register_blueprint(community_bp, url_prefix=f'{prefix}/community')
    app.register_blueprint(gurus_bp, url_prefix=f'{prefix}/gurus')
    app.register_blueprint(admin_gurus_bp, url_prefix=f'{prefix}/admin/gurus')
    app.register_blueprint(admin_bp, url_prefix=f'{prefix}/admin')
    app.register_blueprint(certificates_bp, url_prefix=f'{prefix}/certificates')

    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health_check():
        """Service status"""
        firestore_status = 'healthy' if check_connection() else 'unhealthy'
        s3_status = 'healthy' if check_bucket() else 'unhealthy'
        overall_status = 'healthy' if firestore_status == s3_status == 'healthy' else 'unhealthy'
        return {
            'status': overall_status,
            'timestamp': now_iso(),
            'services': {
                'firestore': firestore_status,
                's3': s3_status,
                'scheduler': scheduler.running
            },
            'environment': app.config['ENVIRONMENT'],
            'version': __version__
        }, 200 if overall_status == 'healthy' else 503

    if app.config['SCHEDULER_ENABLED'] and not app.config.get('TESTING'):
        start_scheduler(app)

    logger.info(f"✅ ShlokaYug API ready ({app.config['ENVIRONMENT']})")
    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    application = create_app()
    application.run(host="0.0.0.0", port=port,
                    debug=application.config['ENVIRONMENT'] == 'development')

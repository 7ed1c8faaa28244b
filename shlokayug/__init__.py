# shlokayug/__init__.py
"""
Backend package for the ShlokaYug Sanskrit learning platform.

Modules:
- app: Flask application factory and health check
- config: environment-driven settings
- database: Firestore client and document helpers
- storage: S3 / Firebase Storage file handling
- auth: password hashing, JWT issuance and route guards
- errors: API error types and JSON error handlers
- schemas: request validation models
- users, courses, enrollments, payments, videos, community,
  gurus, admin, certificates: domain services
- *_routes: REST API blueprints
- scheduler: background jobs
- cli: Flask CLI commands
- utils: shared helpers
"""

__version__ = "1.0.0"
__description__ = "ShlokaYug Sanskrit Learning Platform Backend"

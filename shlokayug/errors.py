# shlokayug/errors.py

import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error carried to the client as a JSON body"""
    status = 500
    code = 'SERVER_ERROR'

    def __init__(self, message, code=None, status=None, **details):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        self.details = details

    def to_dict(self):
        error = {'message': self.message, 'code': self.code}
        error.update(self.details)
        return {'success': False, 'error': error}


class ValidationFailed(ApiError):
    status = 400
    code = 'VALIDATION_ERROR'


class Unauthorized(ApiError):
    status = 401
    code = 'UNAUTHORIZED'


class Forbidden(ApiError):
    status = 403
    code = 'FORBIDDEN'


class NotFound(ApiError):
    status = 404
    code = 'NOT_FOUND'


class Conflict(ApiError):
    status = 409
    code = 'CONFLICT'


class PaymentGatewayError(ApiError):
    status = 502
    code = 'PAYMENT_GATEWAY_ERROR'


def success_response(data=None, message=None, status=200):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def error_response(message, status, code, **details):
    error = {'message': message, 'code': code}
    error.update(details)
    return jsonify({'success': False, 'error': error}), status


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if e.status >= 500:
            logger.error(f"API error {e.code}: {e.message}")
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        fields = [
            {
                'field': '.'.join(str(part) for part in err['loc']),
                'message': err['msg']
            }
            for err in e.errors()
        ]
        return error_response('Validation failed', 400, 'VALIDATION_ERROR', fields=fields)

    @app.errorhandler(404)
    def handle_not_found(e):
        return error_response('Resource not found', 404, 'NOT_FOUND')

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return error_response('Method not allowed', 405, 'METHOD_NOT_ALLOWED')

    @app.errorhandler(413)
    def handle_too_large(e):
        return error_response('Upload is too large', 413, 'PAYLOAD_TOO_LARGE')

    @app.errorhandler(429)
    def handle_rate_limited(e):
        return error_response(
            'Too many requests from this IP, please try again later.',
            429, 'RATE_LIMIT_EXCEEDED'
        )

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return error_response(e.description or e.name, e.code, e.name.upper().replace(' ', '_'))
        logger.exception(f"Unhandled error: {e}")
        return error_response('Internal server error', 500, 'SERVER_ERROR')

# shlokayug/guru_routes.py
from flask import Blueprint, g, request

from shlokayug import gurus
from shlokayug.auth import login_required, roles_required, verified_guru_required
from shlokayug.errors import success_response
from shlokayug.schemas import (
    GuruApplication, GuruStatusRequest, NoteRequest, RejectRequest, ReviewNotes, parse
)
from shlokayug.utils import request_page_args

gurus_bp = Blueprint('gurus', __name__)
admin_gurus_bp = Blueprint('admin_gurus', __name__)


# ── Applicants ──

@gurus_bp.route('/apply', methods=['POST'])
@login_required
def apply():
    data = parse(GuruApplication, request.get_json(silent=True))
    application = gurus.apply(g.current_user, data)
    return success_response({'application': application},
                            'Guru application submitted for review', 201)


@gurus_bp.route('/application-status', methods=['GET'])
@login_required
def application_status():
    return success_response(gurus.application_status(g.current_user))


@gurus_bp.route('/dashboard', methods=['GET'])
@verified_guru_required
def dashboard():
    return success_response(gurus.dashboard(g.current_user))


# ── Admin review ──

@admin_gurus_bp.route('/stats', methods=['GET'])
@roles_required('admin')
def stats():
    return success_response(gurus.guru_stats())


@admin_gurus_bp.route('/pending', methods=['GET'])
@roles_required('admin')
def pending():
    page, limit = request_page_args()
    return success_response(gurus.pending_applications(page, limit))


@admin_gurus_bp.route('/approved', methods=['GET'])
@roles_required('admin')
def approved():
    page, limit = request_page_args()
    return success_response(gurus.approved_gurus(page, limit))


@admin_gurus_bp.route('/<guru_id>', methods=['GET'])
@roles_required('admin')
def detail(guru_id):
    return success_response({'application': gurus.application_detail(guru_id)})


@admin_gurus_bp.route('/<guru_id>/approve', methods=['POST'])
@roles_required('admin')
def approve(guru_id):
    data = parse(ReviewNotes, request.get_json(silent=True))
    application = gurus.approve(g.current_user, guru_id, data.notes)
    return success_response({'application': application}, 'Guru approved')


@admin_gurus_bp.route('/<guru_id>/reject', methods=['POST'])
@roles_required('admin')
def reject(guru_id):
    data = parse(RejectRequest, request.get_json(silent=True))
    application = gurus.reject(g.current_user, guru_id, data.reason)
    return success_response({'application': application}, 'Guru application rejected')


@admin_gurus_bp.route('/<guru_id>/status', methods=['PATCH'])
@roles_required('admin')
def change_status(guru_id):
    data = parse(GuruStatusRequest, request.get_json(silent=True))
    if data.action == 'suspend':
        application = gurus.suspend(g.current_user, guru_id, data.reason)
        message = 'Guru suspended'
    else:
        application = gurus.reactivate(g.current_user, guru_id)
        message = 'Guru reactivated'
    return success_response({'application': application}, message)


@admin_gurus_bp.route('/<guru_id>/notes', methods=['POST'])
@roles_required('admin')
def add_note(guru_id):
    data = parse(NoteRequest, request.get_json(silent=True))
    notes = gurus.add_note(g.current_user, guru_id, data.note)
    return success_response({'notes': notes}, 'Note added', 201)

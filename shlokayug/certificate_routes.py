# shlokayug/certificate_routes.py
from flask import Blueprint, g

from shlokayug import certificates
from shlokayug.auth import login_required, roles_required
from shlokayug.errors import success_response

certificates_bp = Blueprint('certificates', __name__)


@certificates_bp.route('/mine', methods=['GET'])
@login_required
def mine():
    return success_response({'certificates': certificates.my_certificates(g.current_user)})


@certificates_bp.route('/verify/<number>', methods=['GET'])
def verify(number):
    return success_response({'certificate': certificates.verify_certificate(number)})


@certificates_bp.route('/report/sync', methods=['POST'])
@roles_required('admin')
def sync_report():
    added = certificates.sync_master_report()
    return success_response({'added': added}, 'Master report synchronized')

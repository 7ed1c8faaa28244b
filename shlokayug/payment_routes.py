# shlokayug/payment_routes.py
import logging

from flask import Blueprint, g, request

from shlokayug import enrollments, payments
from shlokayug.auth import login_required, roles_required
from shlokayug.errors import Unauthorized, ValidationFailed, success_response
from shlokayug.schemas import PaymentVerification, RefundRequest, parse
from shlokayug.utils import request_page_args

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/verify', methods=['POST'])
@login_required
def verify():
    data = parse(PaymentVerification, request.get_json(silent=True))
    result = enrollments.confirm_enrollment(g.current_user, data.order_id,
                                            data.payment_id, data.signature)
    return success_response(result, 'Payment verified successfully')


@payments_bp.route('/webhook', methods=['POST'])
def webhook():
    """Razorpay webhook; authenticated by the X-Razorpay-Signature header"""
    body = request.get_data()
    if not payments.verify_webhook_signature(body, request.headers.get('X-Razorpay-Signature')):
        logger.warning("Rejected webhook with invalid signature")
        raise Unauthorized('Invalid webhook signature', code='INVALID_SIGNATURE')
    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        raise ValidationFailed('Webhook body must be JSON', code='INVALID_WEBHOOK')

    payment = payments.handle_webhook(event)
    if payment and payment['status'] == 'completed':
        enrollments.grant_for_payment(payment)
    return success_response({'event': event.get('event'), 'handled': payment is not None})


@payments_bp.route('/status/<transaction_id>', methods=['GET'])
@login_required
def status(transaction_id):
    payment = payments.payment_status(g.current_user, transaction_id)
    return success_response({'payment': payment})


@payments_bp.route('/my-payments', methods=['GET'])
@login_required
def my_payments():
    page, limit = request_page_args()
    return success_response(payments.my_payments(g.current_user, page, limit))


@payments_bp.route('/<transaction_id>/refund', methods=['POST'])
@roles_required('admin')
def refund(transaction_id):
    data = parse(RefundRequest, request.get_json(silent=True))
    payment = payments.refund_payment(transaction_id, data.reason)
    logger.info(f"Refund issued by {g.current_user['username']} for {transaction_id}")
    return success_response({'payment': payment}, 'Payment refunded')


@payments_bp.route('/revenue', methods=['GET'])
@roles_required('guru', 'admin')
def revenue():
    return success_response(payments.revenue_summary(g.current_user))

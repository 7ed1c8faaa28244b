# shlokayug/payments.py
import hmac
import hashlib
import logging

import requests
from flask import current_app

from shlokayug.courses import increment_enrollments, price_for
from shlokayug.database import (
    COURSES, ENROLLMENTS, PAYMENTS, create_document, find_documents, find_one,
    get_document, new_id, save_document
)
from shlokayug.errors import Conflict, Forbidden, NotFound, PaymentGatewayError, ValidationFailed
from shlokayug.utils import now_iso, paginate, sort_newest

logger = logging.getLogger(__name__)


def amount_to_paise(amount):
    return int(round(amount * 100))


def new_transaction_id():
    return f"TXN_{new_id()[:16].upper()}"


# ── Razorpay REST ──

def _razorpay_request(method, path, payload=None):
    config = current_app.config
    url = f"{config['RAZORPAY_API_URL']}/{path}"
    try:
        response = requests.request(
            method, url, json=payload,
            auth=(config['RAZORPAY_KEY_ID'], config['RAZORPAY_KEY_SECRET']),
            timeout=config['RAZORPAY_TIMEOUT']
        )
    except requests.RequestException as e:
        logger.error(f"❌ Razorpay request failed: {e}")
        raise PaymentGatewayError('Payment gateway is unreachable')

    if response.status_code >= 400:
        try:
            description = response.json().get('error', {}).get('description')
        except ValueError:
            description = response.text
        logger.error(f"❌ Razorpay {path} returned {response.status_code}: {description}")
        raise PaymentGatewayError(description or 'Payment gateway rejected the request')
    return response.json()


def create_gateway_order(amount_paise, currency, receipt, notes=None):
    """Create a Razorpay order for the amount in the smallest currency unit"""
    return _razorpay_request('POST', 'orders', {
        'amount': amount_paise,
        'currency': currency,
        'receipt': receipt,
        'notes': notes or {}
    })


def create_gateway_refund(payment_id, amount_paise=None):
    payload = {'amount': amount_paise} if amount_paise else {}
    return _razorpay_request('POST', f'payments/{payment_id}/refund', payload)


# ── Signatures ──

def _hmac_hex(secret, message):
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id, payment_id, signature):
    """Checkout signature: HMAC-SHA256 of 'order_id|payment_id' with the key secret"""
    expected = _hmac_hex(current_app.config['RAZORPAY_KEY_SECRET'],
                         f"{order_id}|{payment_id}".encode('utf-8'))
    return hmac.compare_digest(expected, signature or '')


def verify_webhook_signature(body, signature):
    """Webhook signature: HMAC-SHA256 of the raw body with the webhook secret"""
    secret = current_app.config['RAZORPAY_WEBHOOK_SECRET']
    if not secret or not signature:
        return False
    return hmac.compare_digest(_hmac_hex(secret, body), signature)


# ── Payment documents ──

def payment_view(payment):
    data = dict(payment)
    data.pop('signature', None)
    return data


def get_payment_document(transaction_id):
    payment = get_document(PAYMENTS, transaction_id)
    if not payment:
        raise NotFound('Payment not found', code='PAYMENT_NOT_FOUND')
    return payment


def start_payment(user, course, plan):
    """Create the gateway order and a pending payment for a course plan"""
    amount, currency = price_for(course, plan)
    if amount <= 0:
        raise ValidationFailed(f'This course has no {plan} price', code='INVALID_PLAN')

    transaction_id = new_transaction_id()
    order = create_gateway_order(amount_to_paise(amount), currency, transaction_id, notes={
        'user_id': user['id'],
        'course_id': course['id'],
        'plan': plan
    })
    payment = create_document(PAYMENTS, {
        'transaction_id': transaction_id,
        'user_id': user['id'],
        'course_id': course['id'],
        'instructor_id': course['instructor_id'],
        'plan': plan,
        'amount': amount,
        'currency': currency,
        'order_id': order['id'],
        'payment_id': None,
        'signature': None,
        'status': 'pending',
        'failure_reason': None,
        'refund': None,
        'enrollment_id': None,
        'completed_at': None
    }, doc_id=transaction_id)
    logger.info(f"Payment initiated: {transaction_id} order={order['id']} amount={amount} {currency}")
    return {
        'transaction_id': transaction_id,
        'order_id': order['id'],
        'amount': amount,
        'amount_paise': amount_to_paise(amount),
        'currency': currency,
        'key_id': current_app.config['RAZORPAY_KEY_ID'],
        'payment': payment_view(payment)
    }


def complete_payment(payment, payment_id, signature=None):
    payment.update({
        'status': 'completed',
        'payment_id': payment_id,
        'signature': signature,
        'failure_reason': None,
        'completed_at': now_iso()
    })
    save_document(PAYMENTS, payment)
    logger.info(f"✅ Payment completed: {payment['transaction_id']}")
    return payment


def fail_payment(payment, reason, payment_id=None):
    payment['status'] = 'failed'
    payment['failure_reason'] = reason
    if payment_id:
        payment['payment_id'] = payment_id
    save_document(PAYMENTS, payment)
    logger.warning(f"Payment failed: {payment['transaction_id']} ({reason})")
    return payment


def verify_and_complete(user, order_id, payment_id, signature):
    """Check the checkout signature and complete the pending payment"""
    payment = find_one(PAYMENTS, 'order_id', order_id)
    if not payment:
        raise NotFound('Payment not found', code='PAYMENT_NOT_FOUND')
    if payment['user_id'] != user['id']:
        raise Forbidden('This payment belongs to another user', code='NOT_PAYMENT_OWNER')
    if payment['status'] == 'completed':
        return payment
    if payment['status'] == 'refunded':
        raise Conflict('Payment has been refunded', code='PAYMENT_REFUNDED')
    if not verify_payment_signature(order_id, payment_id, signature):
        fail_payment(payment, 'signature_mismatch', payment_id)
        raise ValidationFailed('Payment signature verification failed', code='INVALID_SIGNATURE')
    return complete_payment(payment, payment_id, signature)


def handle_webhook(event):
    """Apply a Razorpay webhook event; returns the affected payment or None"""
    event_type = event.get('event')
    payload = event.get('payload', {})

    if event_type in ('payment.captured', 'payment.failed'):
        entity = payload.get('payment', {}).get('entity', {})
        payment = find_one(PAYMENTS, 'order_id', entity.get('order_id'))
        if not payment:
            logger.warning(f"Webhook {event_type} for unknown order {entity.get('order_id')}")
            return None
        if event_type == 'payment.captured':
            if payment['status'] in ('completed', 'refunded'):
                return payment
            return complete_payment(payment, entity.get('id'))
        if payment['status'] == 'pending':
            return fail_payment(payment, entity.get('error_description') or 'payment_failed',
                                entity.get('id'))
        return payment

    if event_type == 'refund.created':
        entity = payload.get('refund', {}).get('entity', {})
        payment = find_one(PAYMENTS, 'payment_id', entity.get('payment_id'))
        if not payment:
            logger.warning(f"Webhook refund for unknown payment {entity.get('payment_id')}")
            return None
        if payment['status'] != 'refunded':
            _mark_refunded(payment, entity.get('id'), (entity.get('amount') or 0) / 100,
                           'gateway_refund')
        return payment

    logger.info(f"Ignoring webhook event {event_type}")
    return None


def _mark_refunded(payment, refund_id, amount, reason):
    payment['status'] = 'refunded'
    payment['refund'] = {
        'refund_id': refund_id,
        'amount': amount,
        'reason': reason,
        'refunded_at': now_iso()
    }
    save_document(PAYMENTS, payment)

    enrollment = get_document(ENROLLMENTS, payment.get('enrollment_id'))
    if enrollment and enrollment['status'] in ('active', 'completed'):
        was_active = enrollment['status'] == 'active'
        enrollment['status'] = 'cancelled'
        enrollment['cancelled_at'] = now_iso()
        save_document(ENROLLMENTS, enrollment)
        if was_active:
            increment_enrollments(enrollment['course_id'], -1)
    logger.info(f"Payment refunded: {payment['transaction_id']}")


def refund_payment(transaction_id, reason):
    payment = get_payment_document(transaction_id)
    if payment['status'] != 'completed':
        raise Conflict('Only completed payments can be refunded', code='PAYMENT_NOT_REFUNDABLE')
    refund = create_gateway_refund(payment['payment_id'], amount_to_paise(payment['amount']))
    _mark_refunded(payment, refund.get('id'), payment['amount'], reason)
    return payment_view(payment)


def payment_status(user, transaction_id):
    payment = get_payment_document(transaction_id)
    if payment['user_id'] != user['id'] and user['role'] != 'admin':
        raise Forbidden('This payment belongs to another user', code='NOT_PAYMENT_OWNER')
    return payment_view(payment)


def my_payments(user, page, limit):
    payments = sort_newest(find_documents(PAYMENTS, [('user_id', '==', user['id'])]))
    result = paginate(payments, page, limit)
    result['items'] = [payment_view(p) for p in result['items']]
    return result


def revenue_summary(user):
    """Completed revenue; gurus see their own courses, admins see everything"""
    filters = [('status', '==', 'completed')]
    if user['role'] != 'admin':
        filters.append(('instructor_id', '==', user['id']))
    payments = find_documents(PAYMENTS, filters)

    by_currency = {}
    by_course = {}
    for payment in payments:
        by_currency[payment['currency']] = round(
            by_currency.get(payment['currency'], 0) + payment['amount'], 2)
        entry = by_course.setdefault(payment['course_id'], {
            'course_id': payment['course_id'], 'payments': 0, 'amount': 0
        })
        entry['payments'] += 1
        entry['amount'] = round(entry['amount'] + payment['amount'], 2)

    for entry in by_course.values():
        course = get_document(COURSES, entry['course_id'])
        entry['title'] = course['title'] if course else None

    return {
        'total_payments': len(payments),
        'by_currency': by_currency,
        'by_course': sorted(by_course.values(), key=lambda e: e['amount'], reverse=True)
    }

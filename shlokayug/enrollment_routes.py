# shlokayug/enrollment_routes.py
from flask import Blueprint, g, request

from shlokayug import enrollments
from shlokayug.auth import login_required
from shlokayug.errors import success_response
from shlokayug.schemas import (
    BookmarkRequest, EnrollRequest, InitiateEnrollmentRequest, LectureCompleteRequest,
    PaymentVerification, SubscriptionCancelRequest, SubscriptionRenewRequest, parse
)
from shlokayug.utils import request_page_args

enrollments_bp = Blueprint('enrollments', __name__)


@enrollments_bp.route('/enroll', methods=['POST'])
@login_required
def enroll():
    data = parse(EnrollRequest, request.get_json(silent=True))
    enrollment = enrollments.enroll_free(g.current_user, data.course_id)
    return success_response({'enrollment': enrollment}, 'Enrolled successfully', 201)


@enrollments_bp.route('/initiate', methods=['POST'])
@login_required
def initiate():
    data = parse(InitiateEnrollmentRequest, request.get_json(silent=True))
    order = enrollments.initiate_enrollment(g.current_user, data.course_id, data.plan)
    return success_response(order, 'Payment order created', 201)


@enrollments_bp.route('/confirm', methods=['POST'])
@login_required
def confirm():
    data = parse(PaymentVerification, request.get_json(silent=True))
    result = enrollments.confirm_enrollment(g.current_user, data.order_id,
                                            data.payment_id, data.signature)
    return success_response(result, 'Payment verified and enrollment confirmed')


@enrollments_bp.route('/my-enrollments', methods=['GET'])
@login_required
def my_enrollments():
    page, limit = request_page_args()
    status = request.args.get('status')
    return success_response(enrollments.my_enrollments(g.current_user, status, page, limit))


@enrollments_bp.route('/access/<course_id>', methods=['GET'])
@login_required
def access(course_id):
    return success_response(enrollments.validate_access(g.current_user, course_id))


@enrollments_bp.route('/lecture-complete', methods=['POST'])
@login_required
def lecture_complete():
    data = parse(LectureCompleteRequest, request.get_json(silent=True))
    result = enrollments.mark_lecture_complete(g.current_user, data.course_id, data.lecture_id)
    message = 'Course completed' if result['certificate'] else 'Lecture marked complete'
    return success_response(result, message)


@enrollments_bp.route('/course/<course_id>/progress', methods=['GET'])
@login_required
def progress(course_id):
    return success_response(enrollments.course_progress(g.current_user, course_id))


@enrollments_bp.route('/my-subscriptions', methods=['GET'])
@login_required
def my_subscriptions():
    return success_response(enrollments.my_subscriptions(g.current_user))


@enrollments_bp.route('/<enrollment_id>/subscription/cancel', methods=['POST'])
@login_required
def cancel_subscription(enrollment_id):
    data = parse(SubscriptionCancelRequest, request.get_json(silent=True))
    enrollment = enrollments.cancel_subscription(g.current_user, enrollment_id, data.reason,
                                                 data.immediate, data.feedback)
    message = 'Subscription cancelled' if data.immediate else \
        'Subscription will end with the current period'
    return success_response({'enrollment': enrollment}, message)


@enrollments_bp.route('/<enrollment_id>/subscription/renew', methods=['POST'])
@login_required
def renew_subscription(enrollment_id):
    data = parse(SubscriptionRenewRequest, request.get_json(silent=True))
    result = enrollments.renew_subscription(g.current_user, enrollment_id, data.plan)
    if result['order']:
        return success_response(result, 'Renewal payment order created', 201)
    return success_response(result, 'Subscription resumed')


@enrollments_bp.route('/bookmarks', methods=['POST'])
@login_required
def add_bookmark():
    data = parse(BookmarkRequest, request.get_json(silent=True))
    bookmark = enrollments.add_bookmark(g.current_user, data.course_id, data.lecture_id,
                                        data.timestamp, data.note)
    return success_response({'bookmark': bookmark}, 'Bookmark added', 201)


@enrollments_bp.route('/bookmarks/<course_id>', methods=['GET'])
@login_required
def list_bookmarks(course_id):
    return success_response({'bookmarks': enrollments.list_bookmarks(g.current_user, course_id)})


@enrollments_bp.route('/bookmarks/<course_id>/<bookmark_id>', methods=['DELETE'])
@login_required
def remove_bookmark(course_id, bookmark_id):
    enrollments.remove_bookmark(g.current_user, course_id, bookmark_id)
    return success_response(message='Bookmark removed')


@enrollments_bp.route('/progress/summary', methods=['GET'])
@login_required
def progress_summary():
    return success_response(enrollments.progress_summary(g.current_user))


@enrollments_bp.route('/<enrollment_id>', methods=['GET'])
@login_required
def get_enrollment(enrollment_id):
    enrollment = enrollments.get_enrollment(g.current_user, enrollment_id)
    return success_response({'enrollment': enrollment})


@enrollments_bp.route('/<enrollment_id>', methods=['DELETE'])
@login_required
def cancel(enrollment_id):
    enrollment = enrollments.cancel_enrollment(g.current_user, enrollment_id)
    return success_response({'enrollment': enrollment}, 'Enrollment cancelled')

# shlokayug/course_routes.py
from flask import Blueprint, g, request

from shlokayug import courses, enrollments
from shlokayug.auth import login_required, optional_login, verified_guru_required
from shlokayug.errors import success_response
from shlokayug.schemas import (
    CourseCreate, CourseUpdate, LectureCreate, LectureUpdate, LessonCreate, RatingRequest,
    UnitCreate, parse
)
from shlokayug.utils import request_page_args

courses_bp = Blueprint('courses', __name__)


@courses_bp.route('', methods=['GET'])
def list_courses():
    page, limit = request_page_args()
    filters = {key: request.args.get(key) for key in
               ('category', 'level', 'featured', 'instructor', 'q', 'sort')}
    filters = {key: value for key, value in filters.items() if value}
    return success_response(courses.list_courses(filters, page, limit))


@courses_bp.route('/instructor/mine', methods=['GET'])
@verified_guru_required
def instructor_courses():
    return success_response({'courses': courses.instructor_courses(g.current_user)})


@courses_bp.route('/<course_id>', methods=['GET'])
@optional_login
def get_course(course_id):
    return success_response({'course': courses.get_course(course_id, g.current_user)})


@courses_bp.route('', methods=['POST'])
@verified_guru_required
def create_course():
    data = parse(CourseCreate, request.get_json(silent=True))
    course = courses.create_course(g.current_user, data)
    return success_response({'course': course}, 'Course created successfully', 201)


@courses_bp.route('/<course_id>', methods=['PUT'])
@login_required
def update_course(course_id):
    data = parse(CourseUpdate, request.get_json(silent=True))
    course = courses.update_course(course_id, g.current_user, data)
    return success_response({'course': course}, 'Course updated successfully')


@courses_bp.route('/<course_id>', methods=['DELETE'])
@login_required
def delete_course(course_id):
    courses.delete_course(course_id, g.current_user)
    return success_response(message='Course deleted successfully')


@courses_bp.route('/<course_id>/units', methods=['POST'])
@login_required
def add_unit(course_id):
    data = parse(UnitCreate, request.get_json(silent=True))
    unit = courses.add_unit(course_id, g.current_user, data)
    return success_response({'unit': unit}, 'Unit added', 201)


@courses_bp.route('/<course_id>/units/<unit_id>/lessons', methods=['POST'])
@login_required
def add_lesson(course_id, unit_id):
    data = parse(LessonCreate, request.get_json(silent=True))
    lesson = courses.add_lesson(course_id, unit_id, g.current_user, data)
    return success_response({'lesson': lesson}, 'Lesson added', 201)


@courses_bp.route('/<course_id>/units/<unit_id>/lessons/<lesson_id>/lectures', methods=['POST'])
@login_required
def add_lecture(course_id, unit_id, lesson_id):
    data = parse(LectureCreate, request.get_json(silent=True))
    lecture = courses.add_lecture(course_id, unit_id, lesson_id, g.current_user, data)
    return success_response({'lecture': lecture}, 'Lecture added', 201)


@courses_bp.route('/<course_id>/lectures/<lecture_id>', methods=['PUT'])
@login_required
def update_lecture(course_id, lecture_id):
    data = parse(LectureUpdate, request.get_json(silent=True))
    lecture = courses.update_lecture(course_id, lecture_id, g.current_user, data)
    return success_response({'lecture': lecture}, 'Lecture updated')


@courses_bp.route('/<course_id>/lectures/<lecture_id>', methods=['DELETE'])
@login_required
def remove_lecture(course_id, lecture_id):
    courses.remove_lecture(course_id, lecture_id, g.current_user)
    return success_response(message='Lecture removed')


@courses_bp.route('/<course_id>/readiness', methods=['GET'])
@login_required
def readiness(course_id):
    course = courses.get_course_document(course_id)
    courses.ensure_owner(course, g.current_user)
    problems = courses.publishing_readiness(course)
    return success_response({'ready': not problems, 'problems': problems})


@courses_bp.route('/<course_id>/publish', methods=['PATCH'])
@verified_guru_required
def publish(course_id):
    course = courses.publish_course(course_id, g.current_user)
    return success_response({'course': course}, 'Course published successfully')


@courses_bp.route('/<course_id>/unpublish', methods=['PATCH'])
@login_required
def unpublish(course_id):
    course = courses.unpublish_course(course_id, g.current_user)
    return success_response({'course': course}, 'Course unpublished')


@courses_bp.route('/<course_id>/analytics', methods=['GET'])
@login_required
def analytics(course_id):
    return success_response(courses.course_analytics(course_id, g.current_user))


@courses_bp.route('/<course_id>/rating', methods=['POST'])
@login_required
def rate(course_id):
    data = parse(RatingRequest, request.get_json(silent=True))
    result = enrollments.rate_course(g.current_user, course_id, data.rating, data.review)
    return success_response(result, 'Rating saved')

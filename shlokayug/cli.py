# shlokayug/cli.py
import logging

import click
from flask import current_app

from shlokayug.database import USERS, create_document, find_one, save_document
from shlokayug.users import find_by_identifier, new_user_document

logger = logging.getLogger(__name__)

VALID_ROLES = ('student', 'guru', 'admin')


def ensure_admin(email, password, username='admin'):
    """Create the admin account, or promote an existing user with that email"""
    user = find_one(USERS, 'email', email.lower())
    if user:
        user['role'] = 'admin'
        user['metadata']['is_active'] = True
        save_document(USERS, user)
        return user, False
    user = new_user_document(email, username, password, 'Platform', 'Admin', role='admin')
    user['verification']['is_email_verified'] = True
    return create_document(USERS, user), True


def seed_demo_content():
    """Approved guru with a published free course and a first community post"""
    from shlokayug import community, courses
    from shlokayug.schemas import (
        CourseCreate, LectureCreate, LessonCreate, PostCreate, UnitCreate
    )

    guru = find_one(USERS, 'username_lower', 'demo_guru')
    if guru:
        return None
    guru = new_user_document('guru@shlokayug.dev', 'demo_guru', 'DemoGuru#2024',
                             'Demo', 'Acharya', role='guru')
    guru['guru_status'] = 'approved'
    guru['guru'] = {
        'status': 'approved',
        'expertise': ['vedic_chanting', 'sanskrit_language'],
        'experience_years': 12,
        'specializations': ['Chandas', 'Bhagavad Gita recitation']
    }
    guru['verification']['is_email_verified'] = True
    guru = create_document(USERS, guru)

    course = courses.create_course(guru, CourseCreate(
        title='Foundations of Vedic Chanting',
        description='Learn svara, pronunciation and the rhythm of anushtubh verses '
                    'through guided recitation of well known shlokas.',
        category='vedic_chanting',
        level='beginner',
        tags=['chanting', 'svara']
    ))
    unit = courses.add_unit(course['id'], guru, UnitCreate(title='Sounds of Sanskrit'))
    lesson = courses.add_lesson(course['id'], unit['unit_id'], guru,
                                LessonCreate(title='Vowels and svaras'))
    courses.add_lecture(course['id'], unit['unit_id'], lesson['lesson_id'], guru,
                        LectureCreate(title='The three svaras', duration=12, type='video',
                                      is_free_preview=True))
    courses.publish_course(course['id'], guru)
    community.create_post(guru, PostCreate(
        content='Welcome to ShlokaYug! Start with the Gayatri mantra today. #vedic #chanting',
        type='post'
    ))
    return course


def register_commands(app):
    @app.cli.command('create-admin')
    @click.option('--email', default=None, help='Defaults to ADMIN_EMAIL')
    @click.option('--password', default=None, help='Defaults to ADMIN_PASSWORD')
    @click.option('--username', default='admin')
    def create_admin(email, password, username):
        """Create the platform admin account"""
        email = email or current_app.config['ADMIN_EMAIL']
        password = password or current_app.config['ADMIN_PASSWORD']
        if not email or not password:
            raise click.UsageError('Provide --email/--password or set ADMIN_EMAIL/ADMIN_PASSWORD')
        user, created = ensure_admin(email, password, username)
        click.echo(f"{'Created' if created else 'Promoted'} admin {user['email']} ({user['id']})")

    @app.cli.command('set-role')
    @click.argument('identifier')
    @click.argument('role', type=click.Choice(VALID_ROLES))
    def set_role(identifier, role):
        """Change a user's role by email or username"""
        user = find_by_identifier(identifier)
        if not user:
            raise click.ClickException(f'No user matches {identifier}')
        user['role'] = role
        save_document(USERS, user)
        logger.info(f"Role of {user['username']} set to {role}")
        click.echo(f"{user['username']} is now {role}")

    @app.cli.command('seed')
    def seed():
        """Load demo data for local development"""
        course = seed_demo_content()
        if course is None:
            click.echo('Demo data already present')
        else:
            click.echo(f"Seeded demo course {course['id']}")

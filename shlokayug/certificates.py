# shlokayug/certificates.py
import io
import logging

import pandas as pd
import qrcode
from flask import current_app
from PIL import Image, ImageDraw, ImageFont

from shlokayug.database import (
    CERTIFICATES, USERS, create_document, find_documents, get_document, new_id, save_document
)
from shlokayug.errors import NotFound
from shlokayug.storage import download_from_firebase, upload_bytes_to_firebase
from shlokayug.users import full_name
from shlokayug.utils import now_iso, parse_iso, sort_newest, utcnow

logger = logging.getLogger(__name__)

QR_SIZE = 600
REPORT_COLUMNS = [
    'Updated At', 'Certificate Number', 'User ID', 'Email', 'Student Name',
    'Course Title', 'Instructor', 'Issued At', 'Verification URL'
]
XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def new_certificate_number():
    return f"SY-{utcnow().year}-{new_id()[:8].upper()}"


def _wrap_title(draw, title, font, max_width):
    lines = []
    current_line = ""
    for word in title.split():
        test_line = f"{current_line} {word}" if current_line else word
        bbox = draw.textbbox((0, 0), test_line, font=font)
        if bbox[2] - bbox[0] <= max_width:
            current_line = test_line
        else:
            if current_line:
                lines.append(current_line)
            current_line = word
    if current_line:
        lines.append(current_line)
    if len(lines) > 2:
        lines = lines[:2]
        lines[1] = lines[1][:25] + "..."
    return lines


def create_qr_image(link_url, course_title=""):
    """PNG bytes of a QR code for the link with the course title underneath"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=15,
        border=4,
    )
    qr.add_data(link_url)
    qr.make(fit=True)
    qr_img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    qr_img = qr_img.resize((QR_SIZE, QR_SIZE), Image.LANCZOS)

    final_img = qr_img
    if course_title.strip():
        text_height = 120
        margin = 20
        final_img = Image.new('RGB', (QR_SIZE, QR_SIZE + text_height + margin), 'white')
        final_img.paste(qr_img, (0, 0))
        draw = ImageDraw.Draw(final_img)
        font = ImageFont.load_default()

        y_offset = QR_SIZE + margin
        for line in _wrap_title(draw, course_title, font, QR_SIZE - 40):
            bbox = draw.textbbox((0, 0), line, font=font)
            text_x = (QR_SIZE - (bbox[2] - bbox[0])) // 2
            draw.text((text_x, y_offset), line, font=font, fill='black')
            y_offset += (bbox[3] - bbox[1]) + 10

    buffer = io.BytesIO()
    final_img.save(buffer, format='PNG', optimize=True)
    return buffer.getvalue()


def issue_certificate(user, course, enrollment):
    """Certificate for a completed enrollment; one per user and course"""
    existing = find_documents(CERTIFICATES, [
        ('user_id', '==', user['id']), ('course_id', '==', course['id'])
    ], limit=1)
    if existing:
        return existing[0]

    number = new_certificate_number()
    verification_url = f"{current_app.config['CERTIFICATE_VERIFY_BASE_URL']}{number}"
    qr_url = None
    try:
        qr_bytes = create_qr_image(verification_url, course['title'])
        qr_url = upload_bytes_to_firebase(qr_bytes, f"certificates/{number}.png", 'image/png',
                                          public=True)
    except Exception as e:
        logger.error(f"❌ Certificate QR upload failed for {number}: {e}")

    certificate = create_document(CERTIFICATES, {
        'certificate_number': number,
        'user_id': user['id'],
        'course_id': course['id'],
        'enrollment_id': enrollment['id'],
        'course_title': course['title'],
        'student_name': full_name(user) or user['username'],
        'instructor_name': course.get('instructor', {}).get('name', ''),
        'issued_at': now_iso(),
        'verification_url': verification_url,
        'qr_url': qr_url,
        'ready_for_report': True,
        'reported_at': None
    }, doc_id=number)
    logger.info(f"✅ Certificate issued: {number} for {user['username']}")
    return certificate


def verify_certificate(number):
    certificate = get_document(CERTIFICATES, number.upper())
    if not certificate:
        raise NotFound('Certificate not found', code='CERTIFICATE_NOT_FOUND')
    return {
        'valid': True,
        'certificate_number': certificate['certificate_number'],
        'student_name': certificate['student_name'],
        'course_title': certificate['course_title'],
        'instructor_name': certificate['instructor_name'],
        'issued_at': certificate['issued_at']
    }


def my_certificates(user):
    certificates = find_documents(CERTIFICATES, [('user_id', '==', user['id'])])
    return sort_newest(certificates, 'issued_at')


def _load_master_report():
    existing = download_from_firebase(current_app.config['MASTER_REPORT_BLOB'])
    if existing is None:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return pd.read_excel(io.BytesIO(existing), engine='openpyxl')


def sync_master_report():
    """Append certificates not yet reported to the master spreadsheet"""
    pending = find_documents(CERTIFICATES, [('ready_for_report', '==', True)])
    if not pending:
        return 0

    df_master = _load_master_report()
    updated_at = utcnow().strftime("%Y-%m-%d %H:%M:%S")
    rows = []
    for certificate in sort_newest(pending, 'issued_at')[::-1]:
        user = get_document(USERS, certificate['user_id']) or {}
        issued = parse_iso(certificate['issued_at'])
        rows.append({
            'Updated At': updated_at,
            'Certificate Number': certificate['certificate_number'],
            'User ID': certificate['user_id'],
            'Email': user.get('email', ''),
            'Student Name': certificate['student_name'],
            'Course Title': certificate['course_title'],
            'Instructor': certificate['instructor_name'],
            'Issued At': issued.strftime("%Y-%m-%d %H:%M:%S") if issued else '',
            'Verification URL': certificate['verification_url']
        })
    df_master = pd.concat([df_master, pd.DataFrame(rows)], ignore_index=True)

    out_buffer = io.BytesIO()
    with pd.ExcelWriter(out_buffer, engine='openpyxl') as writer:
        df_master.to_excel(writer, index=False, sheet_name="Certificates")
    upload_bytes_to_firebase(out_buffer.getvalue(), current_app.config['MASTER_REPORT_BLOB'],
                             XLSX_CONTENT_TYPE)

    reported_at = now_iso()
    for certificate in pending:
        certificate['ready_for_report'] = False
        certificate['reported_at'] = reported_at
        save_document(CERTIFICATES, certificate)
    logger.info(f"✅ Master certificate report updated with {len(rows)} rows")
    return len(rows)

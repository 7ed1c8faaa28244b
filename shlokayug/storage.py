# shlokayug/storage.py
import logging
from datetime import datetime, timedelta
from urllib.parse import urlparse, parse_qs

import boto3
from boto3.s3.transfer import TransferConfig
from firebase_admin import storage as firebase_storage
from flask import current_app

from shlokayug.database import init_firebase

logger = logging.getLogger(__name__)

s3_config = TransferConfig(
    multipart_threshold=1024 * 1024 * 25,
    multipart_chunksize=1024 * 1024 * 50,
    max_concurrency=5,
    use_threads=True
)


def get_s3():
    """S3 client for the video bucket"""
    client = current_app.extensions.get('s3')
    if client is None:
        config = current_app.config
        client = boto3.client(
            's3',
            aws_access_key_id=config['AWS_ACCESS_KEY'] or None,
            aws_secret_access_key=config['AWS_SECRET_KEY'] or None,
            region_name=config['REGION_NAME'],
            endpoint_url=config['S3_ENDPOINT_URL']
        )
        current_app.extensions['s3'] = client
    return client


def get_firebase_bucket():
    bucket = current_app.extensions.get('firebase_bucket')
    if bucket is None:
        init_firebase(current_app.config['FIREBASE_CREDS'])
        bucket = firebase_storage.bucket()
        current_app.extensions['firebase_bucket'] = bucket
    return bucket


def generate_presigned_url(key, expires_in=None):
    """Presigned GET URL for an S3 object"""
    return get_s3().generate_presigned_url(
        ClientMethod='get_object',
        Params={'Bucket': current_app.config['BUCKET_NAME'], 'Key': key},
        ExpiresIn=expires_in or current_app.config['PRESIGNED_URL_EXPIRES']
    )


def upload_to_s3(file_path, key, content_type=None):
    """Upload a local file to S3"""
    extra_args = {'ContentType': content_type} if content_type else None
    get_s3().upload_file(
        str(file_path), current_app.config['BUCKET_NAME'], key,
        ExtraArgs=extra_args, Config=s3_config
    )


def delete_from_s3(key):
    if not key:
        return
    try:
        get_s3().delete_object(Bucket=current_app.config['BUCKET_NAME'], Key=key)
    except Exception as e:
        logger.warning(f"S3 delete failed for {key}: {e}")


def check_bucket():
    try:
        get_s3().head_bucket(Bucket=current_app.config['BUCKET_NAME'])
        return True
    except Exception as e:
        logger.warning(f"S3 health check failed: {e}")
        return False


def is_presigned_url_expired(url, safety_margin_minutes=60):
    """True when a presigned URL expires within the safety margin"""
    try:
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        if 'X-Amz-Date' not in query or 'X-Amz-Expires' not in query:
            return True
        issued_str = query['X-Amz-Date'][0]
        expires_in = int(query['X-Amz-Expires'][0])
        issued_time = datetime.strptime(issued_str, '%Y%m%dT%H%M%SZ')
        expiry_time = issued_time + timedelta(seconds=expires_in)
        margin_time = datetime.utcnow() + timedelta(minutes=safety_margin_minutes)
        return margin_time >= expiry_time
    except Exception as e:
        logger.warning(f"Presigned URL check failed: {e}")
        return True


def upload_bytes_to_firebase(data, blob_name, content_type, public=False):
    """Upload in-memory content to Firebase Storage and return its public URL"""
    blob = get_firebase_bucket().blob(blob_name)
    blob.upload_from_string(data, content_type=content_type)
    if public:
        blob.make_public()
    return blob.public_url


def download_from_firebase(blob_name):
    """Blob contents as bytes, or None when the blob does not exist"""
    blob = get_firebase_bucket().blob(blob_name)
    if not blob.exists():
        return None
    return blob.download_as_bytes()

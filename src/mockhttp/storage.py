"""Persisting request bodies and uploaded files to disk."""
import logging
import os
import shutil

from python_multipart import create_form_parser
from python_multipart.exceptions import FormParserError

from .capture import MockServerError
from .console import format_file_size

logger = logging.getLogger(__name__)

# Uploaded parts larger than this are spooled to a temporary file
MULTIPART_MEMORY_LIMIT = 32 * 1024
MULTIPART_CONTENT_TYPE = "multipart/form-data"


class PersistenceError(MockServerError):
    pass


class DestinationIsDirectoryError(MockServerError):
    status = 400

    def __init__(self, dest):
        super().__init__("Destination path is a directory", dest)


def is_multipart(content_type):
    return (content_type or "").startswith(MULTIPART_CONTENT_TYPE)


def save_raw(dest, body):
    """Write ``body`` verbatim to the file ``dest``, replacing it if present."""
    if os.path.isdir(dest):
        raise DestinationIsDirectoryError(dest)

    try:
        out = open(dest, "wb")
    except OSError as e:
        raise PersistenceError("Failed to create file", str(e)) from e
    with out:
        try:
            out.write(body)
        except OSError as e:
            raise PersistenceError("Failed to write to file", str(e)) from e

    logger.info("Saved file: %s (%s)", dest, format_file_size(len(body)))
    return dest


def upload_filename(upload):
    """Base name of an uploaded part's filename, or '' when it has none."""
    raw = upload.file_name or b""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    name = os.path.basename(raw.strip())
    if name in (".", ".."):
        return ""
    return name


def _close_all(uploads):
    for upload in uploads:
        upload.close()


def _parse_uploads(headers, chunks, memory_limit):
    uploads = []

    def on_field(field):
        pass

    def on_file(upload):
        uploads.append(upload)

    try:
        parser = create_form_parser(
            headers, on_field, on_file,
            config={"MAX_MEMORY_FILE_SIZE": memory_limit})
        for chunk in chunks:
            parser.write(chunk)
        parser.finalize()
    except (FormParserError, ValueError) as e:
        _close_all(uploads)
        raise PersistenceError("Failed to parse multipart form", str(e)) from e
    except Exception:
        _close_all(uploads)
        raise
    return uploads


def _copy_upload(upload, target):
    upload.file_object.seek(0)
    try:
        out = open(target, "wb")
    except OSError as e:
        raise PersistenceError("Failed to create file", str(e)) from e
    with out:
        try:
            shutil.copyfileobj(upload.file_object, out)
        except OSError as e:
            raise PersistenceError("Failed to write to file", str(e)) from e


def save_multipart(dest, headers, chunks, memory_limit=MULTIPART_MEMORY_LIMIT):
    """Decode a multipart body and save each uploaded file under ``dest``.

    ``headers`` must carry the multipart ``Content-Type`` (with boundary)
    and ``chunks`` is an iterable of body bytes. Every part with a filename
    is written to ``<dest>/<filename>``; plain form fields are ignored.
    Returns the written paths in the order the parts arrived.

    The first failure aborts the request. Files already written by then
    are left on disk.
    """
    uploads = _parse_uploads(headers, chunks, memory_limit)
    logger.info("Received form data with %d files", len(uploads))

    saved = []
    try:
        for upload in uploads:
            name = upload_filename(upload)
            if not name:
                continue
            target = os.path.join(dest, name)
            _copy_upload(upload, target)
            logger.info("Saved file: %s (%s)", target, format_file_size(upload.size))
            saved.append(target)
    finally:
        _close_all(uploads)
    return saved

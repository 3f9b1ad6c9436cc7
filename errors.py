import logging
from flask import jsonify
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class SalonError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SalonError):
    status_code = 400


class NotFoundError(SalonError):
    status_code = 404


class DuplicateEntryError(SalonError):
    status_code = 409


class DuplicateFeedbackError(DuplicateEntryError):
    pass


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


def register_error_handlers(app):
    from models import db

    @app.errorhandler(SalonError)
    def handle_salon_error(e):
        # tulisan yang gagal tidak boleh meninggalkan perubahan setengah jadi
        db.session.rollback()
        return error_response(e.message, e.status_code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        logger.warning("Integrity error: %s", e.orig)
        return error_response('Data dengan kunci yang sama sudah terdaftar.', DuplicateEntryError.status_code)

    @app.errorhandler(404)
    def handle_not_found(e):
        return error_response('Endpoint tidak ditemukan.', 404)

from flask import jsonify
from linkblocks.domain.exceptions import RegistryError


def register_error_handlers(app):
    @app.errorhandler(RegistryError)
    def handle_registry_error(error):
        response = jsonify({
            "error": type(error).__name__,
            "message": error.message,
            "code": error.code,
            "details": error.details,
        })
        response.status_code = error.status_code
        return response

    @app.errorhandler(404)
    def handle_not_found(error):
        response = jsonify({
            "error": "NotFound",
            "message": getattr(error, "description", "Not found"),
        })
        response.status_code = 404
        return response

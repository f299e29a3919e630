import logging
from datetime import date, datetime

from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from eventmaster import admin, auth, routes
from eventmaster.commands import register_commands, seed
from eventmaster.config import Config
from eventmaster.database import db
from eventmaster.errors import ApiError
from eventmaster.storage import create_storage

logger = logging.getLogger(__name__)


class JSONProvider(DefaultJSONProvider):
    """ISO-8601 dates instead of Flask's HTTP date format."""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(err):
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err):
        errors = [{'field': '.'.join(str(p) for p in e['loc']), 'message': e['msg']}
                  for e in err.errors()]
        return jsonify({'message': 'Invalid request data', 'errors': errors}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({'message': err.description}), err.code

    @app.errorhandler(Exception)
    def handle_exception(err):
        logger.exception('Unhandled error: %s', err)
        if app.config['STORAGE_BACKEND'] == 'sql':
            db.session.rollback()
        return jsonify({'message': 'Internal server error'}), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json = JSONProvider(app)

    logging.basicConfig(
        level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
    )

    db.init_app(app)
    auth.login_manager.init_app(app)
    auth.init_auth0(app)

    app.register_blueprint(auth.bp)
    app.register_blueprint(routes.bp)
    app.register_blueprint(admin.bp)
    register_error_handlers(app)
    register_commands(app)

    storage = create_storage(app)
    app.extensions['eventmaster.storage'] = storage
    with app.app_context():
        if app.config['STORAGE_BACKEND'] == 'sql':
            db.create_all()
        seed(storage, app.config)
    logger.info('EventMaster started with %s storage', app.config['STORAGE_BACKEND'])
    return app


if __name__ == '__main__':
    application = create_app()
    application.run(host='0.0.0.0', port=application.config['PORT'],
                    debug=application.config['LOG_LEVEL'] == 'DEBUG')

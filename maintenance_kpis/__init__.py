from flask import Flask, jsonify
from flask_cors import CORS

from .config import config_by_name
from .monitoring import register_monitoring
from .services.cache import RecordCache
from .services.providers import AppSheetClient, SheetsClient, fetch_snapshot


def create_app(config_name='default', appsheet_client=None, sheets_client=None):
    """Create and configure an instance of the Flask application.

    The provider clients default to ones built from the app config; tests
    pass stand-ins so nothing goes over the network.
    """
    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    appsheet = appsheet_client or AppSheetClient.from_config(app.config)
    sheets = sheets_client or SheetsClient.from_config(app.config)

    app.extensions['appsheet_client'] = appsheet
    app.extensions['record_cache'] = RecordCache(
        loader=lambda: fetch_snapshot(appsheet, sheets),
        ttl_seconds=app.config['CACHE_TTL_SECONDS']
    )

    # Enable CORS
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    register_monitoring(app)

    from .api import api_blueprint
    app.register_blueprint(api_blueprint, url_prefix='/api')

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({"status": "ok"}), 200

    return app

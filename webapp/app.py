"""
RespirIT Web Map - Flask Backend
================================
Serves the allergenic tree species map: pick a species, see its percent
cover raster over the base map, download the raster with its info sheet.
"""

import logging
import os
import sys
from io import BytesIO
from typing import Optional

from flask import Flask, Response, jsonify, request, send_file, send_from_directory, session
from flask_cors import CORS

from app_config import AppConfig, configure_logging
from color_mapping import ColorMapping
from export_bundler import ExportBundler
from map_errors import ConfigError, MapError, NotFound
from map_view import MapViewController, SessionRegistry
from overlay_renderer import OverlayRenderer
from raster_catalog import DEFAULT_LABEL, build_catalog
from raster_loader import RasterLoader


logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> Flask:
    """
    Build the Flask app.

    Raises:
        ConfigError: invalid settings or color domain; the app must not start
    """
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    # Shared, read-only for every session
    color_mapping = ColorMapping()
    catalog = build_catalog(config.data_dir)
    loader = RasterLoader()
    renderer = OverlayRenderer(max_bytes=config.max_bytes, min_side=config.min_side)
    bundler = ExportBundler(catalog, loader, config.info_file)

    sessions = SessionRegistry(
        factory=lambda: MapViewController(catalog, color_mapping, loader, renderer),
        max_sessions=config.max_sessions,
    )

    app = Flask(__name__, static_folder='static')
    app.secret_key = config.secret_key
    app.config['RESPIRIT'] = config
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    def current_controller() -> MapViewController:
        sid = session.get('sid')
        if not sid:
            sid = SessionRegistry.new_session_id()
            session['sid'] = sid
        return sessions.get(sid)

    def view_payload(controller: MapViewController) -> dict:
        payload = controller.view().to_dict()
        payload['opacity'] = config.opacity
        if payload['overlay'] is not None:
            payload['overlay']['url'] = f"/api/overlay.png?g={payload['generation']}"
        return payload

    @app.errorhandler(MapError)
    def handle_map_error(e: MapError):
        logger.warning("%s: %s", e.kind, e)
        return jsonify(e.to_dict()), e.status_code

    @app.route('/')
    def index():
        """Serve the map page."""
        return send_from_directory(app.static_folder, 'index.html')

    @app.route('/api/health')
    def health():
        return jsonify({
            'status': 'healthy',
            'data_dir_present': os.path.isdir(config.data_dir),
            'info_present': os.path.isfile(config.info_file),
            'datasets': {
                entry.selection_key: os.path.isfile(entry.source_path)
                for entry in catalog.entries()
            },
        })

    @app.route('/api/catalog')
    def catalog_list():
        return jsonify({
            'default': DEFAULT_LABEL,
            'entries': [
                {'key': entry.selection_key, 'label': entry.display_label}
                for entry in catalog.entries()
            ],
        })

    @app.route('/api/legend')
    def legend():
        return jsonify(color_mapping.legend())

    @app.route('/api/select', methods=['POST'])
    def select():
        """
        Change the current selection.

        Request body:
        {
            "selection": "Alnus spp."
        }

        Unknown selections come back as state "idle" with a warning.
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        controller = current_controller()
        controller.select(data.get('selection'))
        return jsonify(view_payload(controller))

    @app.route('/api/view')
    def view():
        return jsonify(view_payload(current_controller()))

    @app.route('/api/overlay.png')
    def overlay_png():
        overlay = current_controller().view().overlay
        if overlay is None:
            raise NotFound("No overlay to display")
        response = Response(overlay.to_png(), mimetype='image/png')
        response.headers['Cache-Control'] = 'no-store'
        return response

    @app.route('/api/info')
    def info():
        return Response(bundler.read_info(), mimetype='text/plain; charset=utf-8')

    @app.route('/api/download')
    def download():
        """Download the current selection and its info sheet as a ZIP."""
        bundle = bundler.export(current_controller().selection_key)
        return send_file(
            BytesIO(bundle.to_zip()),
            mimetype='application/zip',
            as_attachment=True,
            download_name=bundle.archive_name,
        )

    logger.info("Catalog: %s (data dir %s)", ", ".join(catalog.keys()), config.data_dir)
    return app


if __name__ == '__main__':
    try:
        app = create_app()
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)
    app.run(host='0.0.0.0', port=app.config['RESPIRIT'].port, debug=True)

"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Your session has expired. Reload the page.'}), 400

    # Draft persistence (session cookie, or Redis when configured)
    from backoffice.services.draft_store_service import init_draft_store
    init_draft_store(app)

    # Inventory API client
    from backoffice.services.inventory_api_client import init_api_client
    init_api_client(app)

    # Setup Prometheus metrics instrumentation
    from backoffice.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,      # Trust X-Forwarded-For with 1 proxy
            x_proto=1,    # Trust X-Forwarded-Proto
            x_host=1,     # Trust X-Forwarded-Host
            x_port=1,     # Trust X-Forwarded-Port
            x_prefix=0    # No prefix (not behind a URL prefix)
        )

    # Navigation context: was this request a full page reload?
    from backoffice.middleware import detect_page_reload

    @app.before_request
    def before_request_handler():
        detect_page_reload()

    # Error Handlers
    from backoffice.exceptions import ShopError

    @app.errorhandler(ShopError)
    def handle_shop_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"ShopError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"ShopError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description or error.name}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from backoffice.blueprints.main import main_bp
    from backoffice.blueprints.sales import sales_bp
    from backoffice.blueprints.stock import stock_bp
    from backoffice.blueprints.pricing import pricing_bp
    from backoffice.blueprints.customers import customers_bp
    from backoffice.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(metrics_bp)

    app.logger.info(f"SHOP_API_BASE_URL={app.config.get('SHOP_API_BASE_URL')}")
    app.logger.info(f"DRAFT_BACKEND={app.config.get('DRAFT_BACKEND')}")

    return app

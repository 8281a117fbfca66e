"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify, current_app

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint reporting the draft storage backend.

    Returns:
        200: Healthy, or degraded when drafts cannot be stored (app continues)

    Note:
        This endpoint NEVER returns 500: a missing draft backend only means
        forms will not survive navigation.
    """
    storage = current_app.extensions.get('draft_storage')
    if storage is None:
        return jsonify({
            'status': 'degraded',
            'drafts': 'uninitialized',
            'message': 'Draft storage not initialized'
        }), 200

    if storage.is_available():
        return jsonify({
            'status': 'healthy',
            'drafts': storage.name,
            'message': 'Draft storage is working correctly'
        }), 200

    return jsonify({
        'status': 'degraded',
        'drafts': storage.name,
        'message': 'Draft storage unavailable (forms will not be restored)'
    }), 200

from flask import jsonify, current_app
from flowpay.extensions import db
from . import storefront_bp

# app_errorhandler: 블루프린트뿐만 아니라 앱 전체의 에러를 잡습니다.

@storefront_bp.app_errorhandler(404)
def not_found_error(error):
    return jsonify({'status': 'error',
                    'message': getattr(error, 'description', 'Not found')}), 404

@storefront_bp.app_errorhandler(405)
def method_not_allowed_error(error):
    return jsonify({'status': 'error', 'message': 'Method not allowed'}), 405

@storefront_bp.app_errorhandler(500)
def internal_error(error):
    db.session.rollback()
    current_app.logger.error(f"Internal Server Error: {error}", exc_info=True)
    return jsonify({'status': 'error', 'message': 'Internal server error'}), 500

from flask import Flask, request, jsonify
from flask_cors import CORS
from pricing_engine import PricingProcessor, Role, Settings
from pricing_engine.errors import ValidationError, http_status_for
from pricing_engine.visibility import redact_error
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes
CORS(app)

# Initialize the pricing processor
settings = Settings.from_env()
processor = PricingProcessor.from_settings(settings)


def _viewer_role(default: Role) -> Role:
    value = request.headers.get("X-Viewer-Role") or request.args.get("viewer_role")
    return Role.parse(value) if value else default


def _error_response(e: Exception, role: Role | None = None):
    code, label, message = http_status_for(e)
    if code >= 500:
        logger.error(f"Processing error: {str(e)}", exc_info=True)
    else:
        logger.warning(f"Request rejected ({label}): {str(e)}")
    return jsonify({"error": redact_error(message, role), "status": label}), code


def _handle(action, default_role: Role = Role.SUPER_AGENT):
    """Run action(viewer_role, input_data) and map engine errors to responses."""
    role = None
    try:
        role = _viewer_role(default_role)
        input_data = request.get_json(silent=True) or {}
        return jsonify(action(role, input_data)), 200
    except Exception as e:
        return _error_response(e, role)


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Assignment Pricing & Settlement API",
        "version": "1.0",
        "endpoints": {
            "health": "/health [GET]",
            "register_party": "/hierarchy/parties [POST]",
            "agent_pricing": "/agents/<agent_id>/pricing [PUT]",
            "agent_pricing_history": "/agents/<agent_id>/pricing/history [GET]",
            "quote": "/quote [POST]",
            "create_assignment": "/assignments [POST]",
            "assign_worker": "/assignments/<assignment_id>/worker [POST]",
            "adjust_word_count": "/assignments/<assignment_id>/word-count [POST]",
            "request_quote_change": "/assignments/<assignment_id>/quote-change [POST]",
            "approve_quote_change": "/assignments/<assignment_id>/quote-change/approve [POST]",
            "reject_quote_change": "/assignments/<assignment_id>/quote-change/reject [POST]",
            "transition_status": "/assignments/<assignment_id>/status [POST]",
            "settle": "/assignments/<assignment_id>/settle [POST]",
            "analytics": "/analytics [GET]",
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy", "environment": settings.environment}), 200


@app.route("/hierarchy/parties", methods=["POST"])
def register_party():
    return _handle(lambda role, data: processor.register_party_from_dict(data))


@app.route("/agents/<agent_id>/pricing", methods=["PUT"])
def update_agent_pricing(agent_id):
    return _handle(lambda role, data: processor.update_agent_pricing_from_dict(agent_id, data))


@app.route("/agents/<agent_id>/pricing/history", methods=["GET"])
def agent_pricing_history(agent_id):
    try:
        return jsonify(processor.agent_pricing_history_from_dict(agent_id, request.args.to_dict())), 200
    except Exception as e:
        return _error_response(e)


@app.route("/quote", methods=["POST"])
def quote():
    """Price a work request for a client"""
    def action(role, data):
        if not data:
            raise ValidationError("No input data provided")
        logger.info(f"Quote requested by {data.get('requester_id', 'Unknown')}")
        return processor.quote_from_dict(data, role)

    return _handle(action, Role.CLIENT)


@app.route("/assignments", methods=["POST"])
def create_assignment():
    return _handle(lambda role, data: processor.create_assignment_from_dict(data, role), Role.CLIENT)


@app.route("/assignments/<assignment_id>/worker", methods=["POST"])
def assign_worker(assignment_id):
    return _handle(lambda role, data: processor.assign_worker_from_dict(assignment_id, data, role))


@app.route("/assignments/<assignment_id>/word-count", methods=["POST"])
def adjust_word_count(assignment_id):
    return _handle(lambda role, data: processor.adjust_word_count_from_dict(assignment_id, data, role))


@app.route("/assignments/<assignment_id>/quote-change", methods=["POST"])
def request_quote_change(assignment_id):
    return _handle(lambda role, data: processor.request_quote_change_from_dict(assignment_id, data, role), Role.WORKER)


@app.route("/assignments/<assignment_id>/quote-change/approve", methods=["POST"])
def approve_quote_change(assignment_id):
    return _handle(lambda role, data: processor.approve_quote_change_from_dict(assignment_id, data, role), Role.CLIENT)


@app.route("/assignments/<assignment_id>/quote-change/reject", methods=["POST"])
def reject_quote_change(assignment_id):
    return _handle(lambda role, data: processor.reject_quote_change_from_dict(assignment_id, data, role), Role.CLIENT)


@app.route("/assignments/<assignment_id>/status", methods=["POST"])
def transition_status(assignment_id):
    return _handle(lambda role, data: processor.transition_status_from_dict(assignment_id, data, role))


@app.route("/assignments/<assignment_id>/settle", methods=["POST"])
def settle(assignment_id):
    return _handle(lambda role, data: processor.settle_from_dict(assignment_id, data, role))


@app.route("/analytics", methods=["GET"])
def analytics():
    try:
        return jsonify(processor.analytics_from_dict(request.args.to_dict())), 200
    except Exception as e:
        return _error_response(e)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)

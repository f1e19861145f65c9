"""
AWS Lambda handler for the Assignment Pricing & Settlement API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import base64
import json
import logging
import os
import re

from pricing_engine import PricingProcessor, Role, Settings
from pricing_engine.errors import ValidationError, http_status_for
from pricing_engine.visibility import redact_error

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Initialize processor (reused across warm invocations)
processor = PricingProcessor.from_settings(Settings.from_env())

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Viewer-Role",
    "Access-Control-Allow-Methods": "GET,POST,PUT,OPTIONS",
}

ASSIGNMENT_ACTION = re.compile(
    r"^/assignments/(?P<assignment_id>[^/]+)/"
    r"(?P<action>worker|word-count|status|settle|quote-change|quote-change/approve|quote-change/reject)$"
)
AGENT_PRICING = re.compile(r"^/agents/(?P<agent_id>[^/]+)/pricing$")
AGENT_PRICING_HISTORY = re.compile(r"^/agents/(?P<agent_id>[^/]+)/pricing/history$")


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health, GET /api
    - POST /hierarchy/parties
    - PUT /agents/{agent_id}/pricing, GET /agents/{agent_id}/pricing/history
    - POST /quote
    - POST /assignments, POST /assignments/{id}/{worker|word-count|status|settle}
    - POST /assignments/{id}/quote-change[/approve|/reject]
    - GET /analytics
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/analytics" and http_method == "GET":
        return handle_analytics(event)
    elif path == "/hierarchy/parties" and http_method == "POST":
        return handle_request(event, Role.SUPER_AGENT, lambda role, data: processor.register_party_from_dict(data))
    elif path == "/quote" and http_method == "POST":
        return handle_quote(event)
    elif path == "/assignments" and http_method == "POST":
        return handle_request(event, Role.CLIENT, lambda role, data: processor.create_assignment_from_dict(data, role))

    match = AGENT_PRICING.match(path)
    if match and http_method == "PUT":
        agent_id = match.group("agent_id")
        return handle_request(
            event, Role.SUPER_AGENT, lambda role, data: processor.update_agent_pricing_from_dict(agent_id, data)
        )

    match = AGENT_PRICING_HISTORY.match(path)
    if match and http_method == "GET":
        return handle_pricing_history(event, match.group("agent_id"))

    match = ASSIGNMENT_ACTION.match(path)
    if match and http_method == "POST":
        return handle_assignment_action(event, match.group("assignment_id"), match.group("action"))

    return {"statusCode": 404, "headers": CORS_HEADERS, "body": json.dumps({"error": "Not found", "path": path})}


def handle_health():
    """Health check endpoint."""
    return {
        "statusCode": 200,
        "headers": CORS_HEADERS,
        "body": json.dumps({"status": "healthy", "environment": ENVIRONMENT}),
    }


def handle_api_info():
    """API information endpoint."""
    return {
        "statusCode": 200,
        "headers": CORS_HEADERS,
        "body": json.dumps(
            {
                "status": "ok",
                "message": "Assignment Pricing & Settlement API",
                "version": "1.0",
                "environment": ENVIRONMENT,
                "runtime": "AWS Lambda",
                "endpoints": {
                    "health": "/health [GET]",
                    "register_party": "/hierarchy/parties [POST]",
                    "agent_pricing": "/agents/{agent_id}/pricing [PUT]",
                    "agent_pricing_history": "/agents/{agent_id}/pricing/history [GET]",
                    "quote": "/quote [POST]",
                    "create_assignment": "/assignments [POST]",
                    "assign_worker": "/assignments/{assignment_id}/worker [POST]",
                    "adjust_word_count": "/assignments/{assignment_id}/word-count [POST]",
                    "request_quote_change": "/assignments/{assignment_id}/quote-change [POST]",
                    "approve_quote_change": "/assignments/{assignment_id}/quote-change/approve [POST]",
                    "reject_quote_change": "/assignments/{assignment_id}/quote-change/reject [POST]",
                    "transition_status": "/assignments/{assignment_id}/status [POST]",
                    "settle": "/assignments/{assignment_id}/settle [POST]",
                    "analytics": "/analytics [GET]",
                },
            }
        ),
    }


def handle_quote(event):
    """Price a work request."""
    def action(role, data):
        if not data:
            raise ValidationError("No input data provided")
        logger.info(f"Quote requested by {data.get('requester_id', 'Unknown')}")
        return processor.quote_from_dict(data, role)

    return handle_request(event, Role.CLIENT, action)


def handle_assignment_action(event, assignment_id, action):
    handlers = {
        "worker": (processor.assign_worker_from_dict, Role.SUPER_AGENT),
        "word-count": (processor.adjust_word_count_from_dict, Role.SUPER_AGENT),
        "status": (processor.transition_status_from_dict, Role.SUPER_AGENT),
        "settle": (processor.settle_from_dict, Role.SUPER_AGENT),
        "quote-change": (processor.request_quote_change_from_dict, Role.WORKER),
        "quote-change/approve": (processor.approve_quote_change_from_dict, Role.CLIENT),
        "quote-change/reject": (processor.reject_quote_change_from_dict, Role.CLIENT),
    }
    handler, default_role = handlers[action]
    return handle_request(event, default_role, lambda role, data: handler(assignment_id, data, role))


def handle_pricing_history(event, agent_id):
    params = event.get("queryStringParameters") or {}
    try:
        result = processor.agent_pricing_history_from_dict(agent_id, params)
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": json.dumps(result)}
    except Exception as e:
        return error_response(e)


def handle_analytics(event):
    params = event.get("queryStringParameters") or {}
    try:
        result = processor.analytics_from_dict(params)
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": json.dumps(result)}
    except Exception as e:
        return error_response(e)


def handle_request(event, default_role, action):
    """Parse the body and viewer role, run action(role, data), map engine errors."""
    role = None
    try:
        role = _viewer_role(event, default_role)
        input_data = _parse_body(event)
        result = action(role, input_data)
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": json.dumps(result)}

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return {
            "statusCode": 400,
            "headers": CORS_HEADERS,
            "body": json.dumps({"error": f"Invalid JSON: {str(e)}", "status": "failed"}),
        }

    except Exception as e:
        return error_response(e, role)


def error_response(e, role=None):
    code, label, message = http_status_for(e)
    if code >= 500:
        # Log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
    else:
        logger.warning(f"Request rejected ({label}): {str(e)}")
    return {
        "statusCode": code,
        "headers": CORS_HEADERS,
        "body": json.dumps({"error": redact_error(message, role), "status": label}),
    }


def _parse_body(event):
    body = event.get("body") or ""
    if not isinstance(body, str):
        return body
    if not body:
        return {}
    # Handle base64 encoded body (API Gateway)
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    return json.loads(body)


def _viewer_role(event, default_role):
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    params = event.get("queryStringParameters") or {}
    value = headers.get("x-viewer-role") or params.get("viewer_role")
    return Role.parse(value) if value else default_role

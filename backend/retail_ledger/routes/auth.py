# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/retail_ledger/routes/auth.py
"""
Authentication API routes

- POST /auth/register creates a staff account (name, email, password)
- POST /auth/login exchanges email/password for a bearer JWT
- GET /auth/users pages through accounts (search, role filters)

Tokens are stateless; there is no logout. They expire after
JWT_EXPIRES_MINUTES.
"""

from flask import Blueprint, jsonify, current_app, g, request

from ..models import User
from ..services import auth_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth
from .common import json_body, listing_params

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email"},
    required_on_create={"name", "email", "password"},
    extra_fields={"password"},
)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration. New accounts always get the staff role; admins are
    created with `flask users create --role admin`.
    """
    try:
        payload = json_body()
        patch = validate_payload(model=User, payload=payload, policy=REGISTER_POLICY, partial=False)
        enforce_rules_user(patch)
        user = auth_service.register_user(
            name=patch["name"],
            email=patch["email"],
            password=patch["password"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict(), "message": "Registration successful"}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    The token must be sent as `Authorization: Bearer <token>` on every
    protected route.
    """
    try:
        data = json_body()
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]) or not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        token, expires_in = auth_service.issue_token(user)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "token_type": "Bearer",
            "expires_in": expires_in,
            "message": "Login successful",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthenticationError:
        return jsonify({"error": "Invalid credentials"}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/users")
@require_auth
def list_users_route():
    """
    List users.

    Query params:
    - search: str (optional) - substring of name or email
    - role: admin | staff (optional)
    - page, limit, sort (default desc), sortField
    """
    try:
        result = auth_service.list_users(
            search=request.args.get("search"),
            role=request.args.get("role"),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200

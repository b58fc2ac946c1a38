"""
Auth Blueprint — identity endpoints.

  GET  /api/v1/auth/me        — current profile and its memberships
  POST /api/v1/auth/sign-out  — end the current session (revokes a bearer token;
                                 a no-op for the static identity)

Sign-up and password login belong to the hosted auth service.
"""

from flask import Blueprint, jsonify, request

from phaseboard.auth import current_profile, get_identity_provider
from phaseboard.blueprints import register_error_handlers
from phaseboard.core.exceptions import AuthenticationError
from phaseboard.models.project import ProjectMember

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


@auth_bp.route("/me", methods=["GET"])
def me():
    profile = current_profile()
    if profile is None:
        raise AuthenticationError("Not signed in")
    memberships = ProjectMember.query.filter_by(profile_id=profile.id).all()
    return jsonify({
        "profile": profile.to_dict(),
        "memberships": [
            {"project_id": m.project_id, "role": m.role} for m in memberships
        ],
    })


@auth_bp.route("/sign-out", methods=["POST"])
def sign_out():
    header = request.headers.get("Authorization", "")
    token = header[7:].strip() if header.startswith("Bearer ") else None
    ended = get_identity_provider().sign_out(token)
    return jsonify({"signed_out": ended}), 200

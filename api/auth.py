"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout          (bearer)
- POST /auth/logout-all      (bearer)
- GET  /auth/me              (bearer)
- PUT  /auth/change-password (bearer)
- GET  /auth/stats           (bearer, ADMIN)

Handlers only parse input and render output; the work happens in
services.auth.AuthService.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.user import (
    RegisterSchema,
    LoginSchema,
    RefreshSchema,
    LogoutSchema,
    ChangePasswordSchema,
    UserOutSchema,
)
from utils.decorators import components, jwt_required, roles_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
change_password_schema = ChangePasswordSchema()
user_out_schema = UserOutSchema()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, username, password]
          properties:
            email: { type: string }
            username: { type: string }
            password: { type: string }
            role: { type: string, enum: [USER, ADMIN] }
    responses:
      201:
        description: Created (returns user, access_token and refresh_token)
      403:
        description: Local registration disabled
      409:
        description: Email or username already registered
      422:
        description: Validation error
    """
    data = register_schema.load(_json_body())
    result = components().auth.register(**data)
    return jsonify(
        {
            "data": {
                "user": user_out_schema.dump(result["user"]),
                "tokens": result["tokens"],
            },
            "message": "User registered successfully",
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login with email or username.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [email_or_username, password]
           properties:
             email_or_username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns user, access_token, refresh_token and session_token)
      401:
        description: Invalid credentials
    """
    data = login_schema.load(_json_body())
    result = components().auth.login(data["email_or_username"], data["password"])
    return jsonify(
        {
            "data": {
                "user": user_out_schema.dump(result["user"]),
                "tokens": result["tokens"],
            },
            "message": "Login successful",
        }
    ), 200


@bp.post("/refresh")
def refresh():
    """
    Mint a new access token from a refresh token.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refresh_token]
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns access_token)
      401:
        description: Invalid or expired refresh token
      403:
        description: User account is inactive
    """
    data = refresh_schema.load(_json_body())
    return jsonify({"data": components().auth.refresh(data["refresh_token"])}), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: deletes the given refresh token and/or session.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
             session_token: { type: string }
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    data = logout_schema.load(_json_body())
    components().auth.logout(
        g.current_user_id,
        refresh_token=data["refresh_token"],
        session_token=data["session_token"],
    )
    return jsonify({"message": "Logout successful"}), 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Logout from all devices: deletes every session and refresh token of the caller.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    components().auth.logout_all(g.current_user_id)
    return jsonify({"message": "Logged out from all devices"}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      404:
        description: User not found
      403:
        description: Account is inactive
    """
    user = components().auth.me(g.current_user_id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.put("/change-password")
@jwt_required()
def change_password():
    """
    Change password; every session and refresh token of the caller is revoked.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [current_password, new_password]
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: OK
      401:
        description: Current password is incorrect
      422:
        description: Validation error
    """
    data = change_password_schema.load(_json_body())
    components().auth.change_password(g.current_user_id, data["current_password"], data["new_password"])
    return jsonify({"message": "Password changed successfully. Please login again."}), 200


@bp.get("/stats")
@roles_required(["ADMIN"])
def stats():
    """
    Admin-only: current user, session and token counts.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      403: { description: Insufficient permissions }
    """
    return jsonify({"data": components().housekeeper.statistics()}), 200

"""General application routes."""
from __future__ import annotations

from flask import jsonify, session

from ..config import app


@app.route("/api/health")
def health_check():
    return jsonify({"status": "healthy"})


@app.route("/api/session", methods=["GET"])
def current_session():
    return jsonify({"user": session.get("user")})


@app.route("/api/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"status": "logged-out"})

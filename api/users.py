from flask import Blueprint, jsonify, g

from models.schemas.user import UserOutSchema
from utils.decorators import jwt_required

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify(
        {
            "data": user_out_schema.dump(g.current_user)
        }
    ), 200

"""
Relations blueprint: generic like/subscribe toggling for the current user.

The actor is always the authenticated user, so a user can only create or remove
their own relations. A toggle is safe to retry: after a timeout the client calls
it again and reads the returned state instead of guessing the earlier outcome.
"""
from flask import Blueprint, request, jsonify, g

from api import get_relation_ledger
from models.schemas.relation import RelationToggleSchema, RelationQuerySchema, RelationStateOutSchema
from utils.decorators import jwt_required

bp = Blueprint("relations", __name__)

toggle_schema = RelationToggleSchema()
query_schema = RelationQuerySchema()
state_out_schema = RelationStateOutSchema()


def toggle_response(kind: str, target_id: str):
    present = get_relation_ledger().toggle(g.current_user_id, kind, target_id, deadline=g.deadline)
    return jsonify(
        {
            "data": state_out_schema.dump({"kind": kind, "target_id": target_id, "present": present})
        }
    ), 200


def list_response(kind: str):
    targets = get_relation_ledger().list_by_actor(g.current_user_id, kind, deadline=g.deadline)
    return jsonify(
        {
            "data": sorted(targets),
            "meta": {"kind": kind, "total": len(targets)}
        }
    ), 200


@bp.post("/relations/toggle")
@jwt_required()
def toggle_relation():
    """
    Toggle a relation between the current user and a target
    ---
    tags:
      - Relations
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            kind:
              type: string
              enum: [video-like, comment-like, tweet-like, subscription]
            target_id: { type: string }
    responses:
      200:
        description: Relation state after the toggle ({present})
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = toggle_schema.load(payload)
    return toggle_response(data["kind"], data["target_id"])


@bp.get("/relations")
@jwt_required()
def list_relations():
    """
    List target ids the current user holds a relation of the given kind with
    ---
    tags:
      - Relations
    security:
      - Bearer: []
    parameters:
      - in: query
        name: kind
        type: string
        required: true
        enum: [video-like, comment-like, tweet-like, subscription]
    responses:
      200:
        description: Target ids (unordered set, returned sorted)
    """
    data = query_schema.load(request.args.to_dict())
    return list_response(data["kind"])

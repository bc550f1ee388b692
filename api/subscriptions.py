from flask import Blueprint, jsonify, g

from api import get_relation_ledger
from api.relations import toggle_response, list_response
from models.relation import RelationKind
from utils.decorators import jwt_required

bp = Blueprint("subscriptions", __name__)


@bp.post("/c/<channel_id>")
@jwt_required()
def toggle_subscription(channel_id: str):
    """
    Subscribe to or unsubscribe from a channel
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    parameters:
      - in: path
        name: channel_id
        type: string
        required: true
    responses:
      200: { description: "Subscription state after the toggle ({present})" }
    """
    return toggle_response(RelationKind.SUBSCRIPTION.value, channel_id)


@bp.get("/c/<channel_id>")
@jwt_required()
def subscription_status(channel_id: str):
    """
    Whether the current user is subscribed to a channel
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    parameters:
      - in: path
        name: channel_id
        type: string
        required: true
    responses:
      200: { description: OK }
    """
    present = get_relation_ledger().is_present(
        g.current_user_id, RelationKind.SUBSCRIPTION, channel_id, deadline=g.deadline
    )
    return jsonify({"data": {"channel_id": channel_id, "is_subscribed": present}}), 200


@bp.get("/u")
@jwt_required()
def subscribed_channels():
    """
    Channels the current user is subscribed to
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    return list_response(RelationKind.SUBSCRIPTION.value)

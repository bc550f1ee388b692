from flask import Blueprint

from api.relations import toggle_response, list_response
from models.relation import RelationKind
from utils.decorators import jwt_required

bp = Blueprint("likes", __name__)


@bp.post("/toggle/v/<video_id>")
@jwt_required()
def toggle_video_like(video_id: str):
    """
    Like or unlike a video
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
    responses:
      200: { description: "Like state after the toggle ({present})" }
    """
    return toggle_response(RelationKind.VIDEO_LIKE.value, video_id)


@bp.post("/toggle/c/<comment_id>")
@jwt_required()
def toggle_comment_like(comment_id: str):
    """
    Like or unlike a comment
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
    responses:
      200: { description: "Like state after the toggle ({present})" }
    """
    return toggle_response(RelationKind.COMMENT_LIKE.value, comment_id)


@bp.post("/toggle/t/<tweet_id>")
@jwt_required()
def toggle_tweet_like(tweet_id: str):
    """
    Like or unlike a tweet
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    parameters:
      - in: path
        name: tweet_id
        type: string
        required: true
    responses:
      200: { description: "Like state after the toggle ({present})" }
    """
    return toggle_response(RelationKind.TWEET_LIKE.value, tweet_id)


@bp.get("/videos")
@jwt_required()
def liked_videos():
    """
    Ids of the videos the current user likes
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    return list_response(RelationKind.VIDEO_LIKE.value)

"""Unit tests for the ORM models defined in threadline.models.

These check mapping details the services rely on: table names, the
uniqueness constraints that back the race-safe inserts, and the sorted
pair columns on connections.
"""

from threadline.models import (
    Bookmark,
    CommunityMember,
    Connection,
    Follow,
    Reaction,
    User,
)


def _unique_sets(model) -> set[frozenset[str]]:
    return {
        frozenset(column.name for column in constraint.columns)
        for constraint in model.__table__.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    }


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert User.__tablename__ == "user_account"
    assert Connection.__tablename__ == "connection"
    assert CommunityMember.__tablename__ == "community_member"


def test_uniqueness_constraints():
    assert frozenset({"follower_id", "following_id"}) in _unique_sets(Follow)
    assert frozenset({"user_id", "post_id", "type"}) in _unique_sets(Reaction)
    assert frozenset({"user_id", "post_id"}) in _unique_sets(Bookmark)
    assert frozenset({"low_user_id", "high_user_id"}) in _unique_sets(Connection)
    assert frozenset({"user_id", "community_id"}) in _unique_sets(CommunityMember)


def test_connection_pair_is_order_independent():
    forward = Connection.between(3, 8)
    backward = Connection.between(8, 3)
    assert (forward.low_user_id, forward.high_user_id) == (3, 8)
    assert (backward.low_user_id, backward.high_user_id) == (3, 8)
    assert backward.requester_id == 8 and backward.target_id == 3


def test_connection_other_party_is_the_opposite_user():
    ada, bea = User(id=3, username="ada"), User(id=8, username="bea")
    connection = Connection.between(3, 8)
    connection.requester, connection.target = ada, bea
    assert connection.other_party(3) is bea
    assert connection.other_party(8) is ada


def test_display_name_fallbacks():
    assert User(id=4, name="Ada", username="ada").display_name == "Ada"
    assert User(id=4, username="ada").display_name == "ada"
    assert User(id=4).display_name == "user-4"

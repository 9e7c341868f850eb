"""Pydantic schemas and value types for the Penne Stage service."""

from .feed import Comment, CommentCreate, Profile, ProfileUpdate
from .menu import DiningHall, MenuItem, OperatingHours
from .query import Filter, Order, QuerySpec
from .rating import AggregatedRanking, Rating, RatingCreate
from .vote import DishVoteCounter, UserDishVote, VoteDirection, VoteState

__all__ = [
    "AggregatedRanking", "Rating", "RatingCreate",
    "Comment", "CommentCreate", "Profile", "ProfileUpdate",
    "DiningHall", "MenuItem", "OperatingHours",
    "DishVoteCounter", "UserDishVote", "VoteDirection", "VoteState",
    "Filter", "Order", "QuerySpec",
]

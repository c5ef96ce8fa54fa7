"""Cognito constructs."""

from .cognito_construct import Cognito

__all__ = ["Cognito"]

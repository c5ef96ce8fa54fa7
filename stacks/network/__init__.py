"""Load balancer constructs for the chat auth gateway.

This module provides the internet-facing Application Load Balancer and its
Cognito-authenticated variant with the internal re-authentication listener.
"""

from .alb_construct import Alb, AuthorizedAlb

__all__ = ["Alb", "AuthorizedAlb"]

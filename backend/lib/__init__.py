"""Backend utilities"""
from .supabase_client import get_supabase_client, is_supabase_configured
from .auth import get_current_learner, verify_token

__all__ = ["get_supabase_client", "is_supabase_configured", "get_current_learner", "verify_token"]

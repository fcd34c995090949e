"""
Supabase client for backend operations

Supabase is optional for the voice coach: it backs token lookup and the
session event sink when SUPABASE_URL and SUPABASE_SERVICE_KEY are set.
"""
import logging
import os
from typing import Optional

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()
load_dotenv('../.env')  # Also try parent directory

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def is_supabase_configured() -> bool:
    return bool(os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"))


def get_supabase_client() -> Optional[Client]:
    """Get or create the Supabase client singleton; None when Supabase is not configured."""
    global _supabase_client

    if _supabase_client is None:
        if not is_supabase_configured():
            return None
        # Service role key: the backend writes event rows on behalf of learners
        _supabase_client = create_client(os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_SERVICE_KEY"))
        logger.info("🗄️ Supabase client created")

    return _supabase_client


def reset_supabase_client() -> None:
    global _supabase_client
    _supabase_client = None

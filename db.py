import os
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple
from dotenv import load_dotenv

# ==================== CONFIGURATION & SETUP ====================

load_dotenv()

logger = logging.getLogger(__name__)

# Global Supabase client instance
supabase_client = None

# Supabase configuration validation
REQUIRED_ENV_VARS = ['SUPABASE_URL', 'SUPABASE_SERVICE_ROLE_KEY']

# Table used for connectivity checks (the key-value table backs every entity)
KV_TABLE_NAME = os.getenv('KV_TABLE_NAME', 'kv_store_a40ffbb5')

# ==================== HELPER FUNCTIONS ====================
# Utility functions for client configuration and response validation

def _validate_supabase_config() -> Tuple[str, str]:
    """
    Validate Supabase configuration from environment variables
    - Checks for required environment variables
    - Rejects placeholder service role keys
    - Returns validated URL and key
    """
    missing_vars = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]
    if missing_vars:
        error_msg = f"Missing required environment variables: {', '.join(missing_vars)}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    url = os.getenv('SUPABASE_URL')
    key = os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    if key == 'your_supabase_service_role_key_here':
        error_msg = "Supabase service role key not properly configured"
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    return url, key

def _create_supabase_client_instance(url: str, key: str):
    """
    Create Supabase client instance with proper error handling
    """
    from supabase import create_client

    try:
        client = create_client(url, key)
        logger.info("Supabase client instance created successfully")
        return client
    except Exception as e:
        error_msg = f"Failed to create Supabase client: {e}"
        logger.error(error_msg)
        raise RuntimeError(error_msg) from e

def _test_supabase_connection(client) -> bool:
    """
    Run a minimal query against the key-value table to verify connectivity
    """
    try:
        client.table(KV_TABLE_NAME).select('key').limit(1).execute()
        return True
    except Exception as e:
        logger.error(f"Supabase connection test failed: {e}")
        return False

# ==================== SUPABASE CLIENT MANAGEMENT ====================
# Core functions for Supabase client initialization and management

def init_supabase_client():
    """
    Initialize the Supabase client used by the key-value store

    Returns:
        Supabase client instance

    Raises:
        RuntimeError: If configuration is invalid or client creation fails
    """
    global supabase_client

    url, key = _validate_supabase_config()
    supabase_client = _create_supabase_client_instance(url, key)
    logger.info("Supabase client initialization successful")
    return supabase_client

def get_supabase_client():
    """
    Get Supabase client instance, initializing it on first use

    Usage:
        - Used by SupabaseKVStore for every read and write
        - Returns the same instance on subsequent calls
    """
    global supabase_client
    if supabase_client is None:
        supabase_client = init_supabase_client()
    return supabase_client

def reset_supabase_client() -> None:
    """
    Reset Supabase client instance (force re-initialization on next use)
    """
    global supabase_client
    supabase_client = None
    logger.info("Supabase client reset - will re-initialize on next use")

# ==================== HEALTH CHECKS ====================

def test_connection() -> Tuple[bool, str]:
    """
    Test Supabase client connection

    Returns:
        Tuple containing (success_status, message)
    """
    try:
        client = get_supabase_client()
        if _test_supabase_connection(client):
            logger.info("Connection test successful")
            return True, "Supabase connection successful"
        logger.error("Connection test failed: query failed")
        return False, "Connection test query failed"
    except Exception as e:
        logger.error(f"Connection test failed: {e}")
        return False, str(e)

def perform_health_check() -> Dict[str, Any]:
    """
    Perform database health check with timing information

    Returns:
        Dictionary containing status, message and response time
    """
    start_time = datetime.now(timezone.utc)
    success, message = test_connection()
    end_time = datetime.now(timezone.utc)

    return {
        "status": "healthy" if success else "unhealthy",
        "success": success,
        "message": message,
        "response_time_seconds": (end_time - start_time).total_seconds(),
        "timestamp": end_time.isoformat(),
    }

# ==================== RESPONSE FORMATTING & ERROR HANDLING ====================

def format_supabase_response(response) -> Optional[list]:
    """
    Extract the row list from a Supabase query response, or None if empty
    """
    if hasattr(response, 'data') and response.data is not None:
        return response.data
    return None

def handle_supabase_error(response):
    """
    Raise if a Supabase response carries error information

    Usage:
        - Called after every Supabase query in the key-value store
    """
    error = getattr(response, 'error', None)
    if error:
        logger.error(f"Supabase error: {error}")
        raise RuntimeError(f"Database error: {error}")
    return response
